# maturitykit

A library for DevOps maturity assessments. It loads a survey definition
from JSON, gives every question and answer a stable ID, scores sections and
sub-categories, stores assessments with their responses and scores in an
SQLite database, and answers role-based access questions.

It has no third-party dependencies.

## Modules

- `maturitykit.survey` — `QuestionService` reads the questions and advice
  files and scores answered surveys; `parse_survey` builds a `Survey` from
  JSON text; `section_name_to_url_name` turns a section name into its URL
  form (commas removed, spaces to hyphens, lower case).
- `maturitykit.assessments` — `AssessmentService` stores `Assessment`,
  `Response` and `SectionScore` records. An assessment's status is an
  `AssessmentStatus`: `in_progress` or `completed`.
- `maturitykit.roles` — `RoleService` looks up `Role` and `Permission`
  records; `RBACService` checks what a user may do through the roles held in
  teams and groups. `RoleName`, `Resource` and `Action` list the predefined
  names.

## Survey file format

The questions file is a JSON list of sections:

```json
[
  {
    "SectionName": "Continuous Integration",
    "Questions": [
      {"Type": "Banner", "QuestionText": "Build practices"},
      {
        "Type": "Option",
        "SubCategory": "Builds",
        "QuestionText": "How often do builds run?",
        "Answers": [
          {"Answer": "Never", "Score": 0},
          {"Answer": "On every commit", "Score": 2}
        ]
      },
      {"Type": "Checkbox", "QuestionText": "Do you run unit tests?"}
    ]
  }
]
```

Field names are matched without regard to case. Each non-banner question
gets the ID `S<section>-Q<question>` and each answer `S<s>-Q<q>-A<answer>`,
all counted from 1. A question with no answers gets `Yes` (score 1) and
`No` (score 0). A section whose questions carry a `SubCategory` has
`has_subcategories` set.

Scoring:

- a question's score is the sum of its checked answers; banners score 0;
- an `Option` question's maximum is its best answer, a `Checkbox`
  question's maximum is the sum of all its answers;
- a section's percentage is score over maximum times 100; sections with a
  maximum of 0 are left out of `section_scores`;
- `subcategory_scores` does the same per sub-category of one section, in the
  order the sub-categories first appear.

The advice file is a JSON object keyed by section name, each value holding
`Advice`, an optional `ReadMore` and a list of `Links` (`Type`, `Text`,
`Href`, optional `Paid`). Keys named `//` are comments and skipped.
`load_advice` returns a dict of `Advice` objects.

## Working with a survey

```python
from maturitykit.survey import QuestionService, section_name_to_url_name

questions = QuestionService("questions.json", "advice.json")
survey = questions.load_questions()

section = questions.get_section_by_url_name(
    survey, section_name_to_url_name("Continuous Integration")
)
question = questions.get_question_by_id(survey, "S1-Q2")
print(question.question_text, questions.question_max_score(question))
```

`apply_responses` marks the answers named in a list of `Response` objects
as checked; `extract_responses` goes the other way.

## Storing assessments

`AssessmentService` takes an `sqlite3.Connection`. The package does not
create tables; the schema must provide the columns it reads and the unique
keys its upserts rely on, for example:

```sql
CREATE TABLE assessments (
    id INTEGER PRIMARY KEY,
    team_id INTEGER NOT NULL,
    created_by INTEGER NOT NULL,
    session_id TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    completed_at TIMESTAMP
);
CREATE TABLE responses (
    id INTEGER PRIMARY KEY,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL,
    answer_ids TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (assessment_id, question_id)
);
CREATE TABLE section_scores (
    id INTEGER PRIMARY KEY,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
    section_name TEXT NOT NULL,
    score REAL, max_score REAL, percentage REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (assessment_id, section_name)
);
```

Scoring a stored assessment:

```python
import sqlite3

from maturitykit.assessments import Assessment, AssessmentService, Response
from maturitykit.survey import QuestionService

db = sqlite3.connect("assessments.db")
store = AssessmentService(db)
questions = QuestionService("questions.json", "advice.json")

assessment = store.create_assessment(Assessment(team_id=3, created_by=7))
store.save_response(Response(assessment.id, "S1-Q2", ["S1-Q2-A2"]))

survey = questions.load_questions()
questions.apply_responses(survey, store.get_responses(assessment.id))
for score in questions.section_scores(survey, assessment.id):
    store.save_section_score(score)
store.complete_assessment(assessment.id)

print(store.latest_team_assessment(3).completed_at)
```

A session ID is generated with `generate_session_id` when none is given.
`list_team_assessments` and `list_user_assessments` return newest first;
the latter also returns the total count for paging.

## Access checks

`RBACService` reads the `roles`, `permissions`, `role_permissions`,
`user_teams`, `user_groups` and `teams` tables:

```python
from maturitykit.roles import Action, RBACService, Resource

rbac = RBACService(db)
rbac.check_user_permission(7, Resource.REPORT, Action.EXPORT)
rbac.check_team_permission(7, 3, Resource.ASSESSMENT, Action.CREATE)
rbac.is_user_admin(7)
```

`check_team_permission` grants a permission held through the user's role in
the team itself or through their role in the team's group.

## Errors

Failures are raised as exceptions: `SurveyError` for unreadable or
malformed survey data and failed lookups; `AssessmentError`, with
`AssessmentNotFound` and `InvalidStatus`, for assessment storage;
`RoleError`, with `RoleNotFound`, for role lookups. `PermissionNotFound`
and `AccessDenied` are provided for callers to raise.

## What it does not do

The library does not manage teams, groups or users, store or check
passwords, or create its database schema. It has no command-line program,
web interface or server, and no single call that runs a whole assessment or
exports results to CSV; those steps are put together from the services
above.

## Tests

The test suite uses pytest and is installed with the `test` extra.