"""Survey questions, answers, scoring and improvement advice."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from maturitykit.assessments import Response, SectionScore

BANNER = "Banner"
OPTION = "Option"
CHECKBOX = "Checkbox"
CHECKED = "checked"


class SurveyError(Exception):
    """Raised when survey data cannot be loaded or looked up."""


@dataclass
class Answer:
    """One possible answer to a question."""

    answer: str
    score: float = 0.0
    id: str = ""
    value: str = ""

    @property
    def checked(self) -> bool:
        return self.value == CHECKED


@dataclass
class Question:
    """A survey question; banners carry text only."""

    type: str
    question_text: str
    sub_category: str = ""
    answers: list[Answer] = field(default_factory=list)
    id: str = ""


@dataclass
class Section:
    """A named group of questions."""

    section_name: str
    questions: list[Question] = field(default_factory=list)
    spider_pos: int = 0
    has_subcategories: bool = False


@dataclass
class Survey:
    """The whole survey."""

    sections: list[Section] = field(default_factory=list)


@dataclass
class AdviceLink:
    """A resource linked from a piece of advice."""

    type: str
    text: str
    href: str
    paid: str = ""


@dataclass
class Advice:
    """Improvement advice for a section."""

    section_name: str
    advice: str
    read_more: str = ""
    links: list[AdviceLink] = field(default_factory=list)


def _field(obj: dict, name: str) -> Any:
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if key.lower() == lowered:
            return value
    return None


def _string(obj: dict, name: str) -> str:
    value = _field(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SurveyError(f"field {name} must be a string, got {value!r}")
    return value


def _number(obj: dict, name: str) -> float:
    value = _field(obj, name)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SurveyError(f"field {name} must be a number, got {value!r}")
    return float(value)


def _objects(obj: dict, name: str) -> list[dict]:
    value = _field(obj, name)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise SurveyError(f"field {name} must be a list of objects")
    return value


def _parse_answer(obj: dict) -> Answer:
    return Answer(
        answer=_string(obj, "Answer"),
        score=_number(obj, "Score"),
        id=_string(obj, "ID"),
        value=_string(obj, "Value"),
    )


def _parse_question(obj: dict) -> Question:
    return Question(
        type=_string(obj, "Type"),
        question_text=_string(obj, "QuestionText"),
        sub_category=_string(obj, "SubCategory"),
        answers=[_parse_answer(a) for a in _objects(obj, "Answers")],
        id=_string(obj, "ID"),
    )


def _parse_section(obj: dict) -> Section:
    return Section(
        section_name=_string(obj, "SectionName"),
        questions=[_parse_question(q) for q in _objects(obj, "Questions")],
        spider_pos=int(_number(obj, "SpiderPos")),
    )


def _assign_ids(survey: Survey) -> None:
    for s_num, section in enumerate(survey.sections, start=1):
        for q_num, question in enumerate(section.questions, start=1):
            if question.type == BANNER:
                continue
            question.id = f"S{s_num}-Q{q_num}"
            if not question.answers:
                question.answers = [Answer("Yes", 1.0), Answer("No", 0.0)]
            for a_num, answer in enumerate(question.answers, start=1):
                answer.id = f"S{s_num}-Q{q_num}-A{a_num}"


def _detect_subcategories(survey: Survey) -> None:
    for section in survey.sections:
        section.has_subcategories = any(q.sub_category for q in section.questions)


def parse_survey(data: str | bytes | list) -> Survey:
    """Build a survey from its JSON text, assigning question and answer ids."""
    try:
        raw = json.loads(data) if isinstance(data, (str, bytes, bytearray)) else data
        if not isinstance(raw, list) or not all(isinstance(s, dict) for s in raw):
            raise SurveyError("expected a list of sections")
        survey = Survey([_parse_section(s) for s in raw])
    except (ValueError, SurveyError) as exc:
        raise SurveyError(f"failed to parse questions JSON: {exc}") from exc
    _assign_ids(survey)
    _detect_subcategories(survey)
    return survey


def section_name_to_url_name(section_name: str) -> str:
    """Return the URL-friendly form of a section name."""
    return section_name.replace(",", "").replace(" ", "-").lower()


class QuestionService:
    """Loads the survey and advice files and scores answered surveys."""

    def __init__(self, questions_file: str | Path, advice_file: str | Path) -> None:
        self.questions_file = Path(questions_file)
        self.advice_file = Path(advice_file)

    def load_questions(self) -> Survey:
        """Read and parse the questions file."""
        try:
            data = self.questions_file.read_bytes()
        except OSError as exc:
            raise SurveyError(f"failed to read questions file: {exc}") from exc
        return parse_survey(data)

    def get_section_by_name(self, survey: Survey, name: str) -> Section:
        for section in survey.sections:
            if section.section_name == name:
                return section
        raise SurveyError(f"section not found: {name}")

    def get_section_by_url_name(self, survey: Survey, url_name: str) -> Section:
        for section in survey.sections:
            if section_name_to_url_name(section.section_name) == url_name:
                return section
        raise SurveyError(f"section not found: {url_name}")

    def get_question_by_id(self, survey: Survey, question_id: str) -> Question:
        for section in survey.sections:
            for question in section.questions:
                if question.id == question_id:
                    return question
        raise SurveyError(f"question not found: {question_id}")

    def question_score(self, question: Question) -> float:
        """Sum of the scores of the checked answers."""
        if question.type == BANNER:
            return 0.0
        return sum((a.score for a in question.answers if a.checked), 0.0)

    def question_max_score(self, question: Question) -> float:
        """Highest reachable score: best option, or all checkboxes together."""
        if question.type == OPTION:
            return max((a.score for a in question.answers), default=0.0) if any(
                a.score > 0 for a in question.answers
            ) else 0.0
        if question.type == CHECKBOX:
            return sum((a.score for a in question.answers), 0.0)
        return 0.0

    def apply_responses(self, survey: Survey, responses: Iterable[Response]) -> None:
        """Mark the answers chosen in the responses as checked."""
        chosen = {r.question_id: r.answer_ids for r in responses}
        for section in survey.sections:
            for question in section.questions:
                if question.id not in chosen:
                    continue
                selected = set(chosen[question.id])
                for answer in question.answers:
                    answer.value = CHECKED if answer.id in selected else ""

    def extract_responses(self, survey: Survey, assessment_id: int) -> list[Response]:
        """Collect the checked answers of every answered question."""
        responses = []
        for section in survey.sections:
            for question in section.questions:
                if question.type == BANNER or not question.id:
                    continue
                answer_ids = [a.id for a in question.answers if a.checked]
                if answer_ids:
                    responses.append(Response(assessment_id, question.id, answer_ids))
        return responses

    def _score(self, questions: Iterable[Question]) -> tuple[float, float]:
        score = max_score = 0.0
        for question in questions:
            score += self.question_score(question)
            max_score += self.question_max_score(question)
        return score, max_score

    def section_scores(self, survey: Survey, assessment_id: int) -> list[SectionScore]:
        """Scores of every section that has something to score."""
        scores = []
        for section in survey.sections:
            score, max_score = self._score(section.questions)
            if max_score > 0:
                scores.append(
                    SectionScore(
                        assessment_id=assessment_id,
                        section_name=section.section_name,
                        score=score,
                        max_score=max_score,
                        percentage=score / max_score * 100,
                    )
                )
        return scores

    def subcategory_scores(
        self, survey: Survey, section_name: str, assessment_id: int
    ) -> list[SectionScore]:
        """Scores per subcategory of one section, in order of first appearance."""
        section = next(
            (s for s in survey.sections if s.section_name == section_name), None
        )
        if section is None:
            return []
        grouped: dict[str, list[Question]] = {}
        for question in section.questions:
            if question.sub_category:
                grouped.setdefault(question.sub_category, []).append(question)
        scores = []
        for name, questions in grouped.items():
            score, max_score = self._score(questions)
            if max_score > 0:
                scores.append(
                    SectionScore(
                        assessment_id=assessment_id,
                        section_name=name,
                        score=score,
                        max_score=max_score,
                        percentage=score / max_score * 100,
                    )
                )
        return scores

    def load_advice(self) -> dict[str, Advice]:
        """Read the advice file, keyed by section name; "//" entries are comments."""
        try:
            data = self.advice_file.read_bytes()
        except OSError as exc:
            raise SurveyError(f"failed to read advice file: {exc}") from exc
        try:
            raw = json.loads(data)
        except ValueError as exc:
            raise SurveyError(f"failed to parse advice JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise SurveyError("failed to parse advice JSON: expected an object")

        advice = {}
        for key, value in raw.items():
            if key == "//":
                continue
            try:
                if not isinstance(value, dict):
                    raise SurveyError("expected an object")
                links = [
                    AdviceLink(
                        type=_string(link, "Type"),
                        text=_string(link, "Text"),
                        href=_string(link, "Href"),
                        paid=_string(link, "Paid"),
                    )
                    for link in _objects(value, "Links")
                ]
                advice[key] = Advice(
                    section_name=key,
                    advice=_string(value, "Advice"),
                    read_more=_string(value, "ReadMore"),
                    links=links,
                )
            except SurveyError as exc:
                raise SurveyError(
                    f"failed to parse advice for section {key}: {exc}"
                ) from exc
        return advice