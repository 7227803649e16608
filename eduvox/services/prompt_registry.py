"""Prompt templates and inventory helpers for pathway generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


PROMPT_REGISTRY_VERSION = "2026-10-01"


PATHWAY_JSON_SHAPE = """{{
  "id": "short_snake_case_identifier",
  "country": "target country",
  "course": "target course or field",
  "academicLevel": "academic level",
  "timeline": {{
    "totalDuration": "e.g. 18-24 months",
    "phases": [{{"phase": "name", "duration": "e.g. 6 months", "description": "what happens"}}]
  }},
  "steps": [
    {{
      "step": 1,
      "title": "short title",
      "description": "what to do and why",
      "duration": "e.g. 2-4 weeks",
      "priority": "low | medium | high",
      "tasks": ["task", "task"],
      "documents": "documents needed, if any"
    }}
  ],
  "universities": [{{"name": "string", "city": "string", "tuition": "string", "ranking": "string"}}],
  "visaRequirements": {{"type": "string", "requirements": ["string"], "processingTime": "string"}},
  "scholarships": [{{"name": "string", "amount": "string", "eligibility": "string"}}],
  "costs": {{"tuition": "string", "living": "string", "insurance": "string", "total": "string"}},
  "languageRequirements": {{"ielts": "string", "toefl": "string", "alternatives": ["string"]}},
  "careerProspects": {{"averageSalary": "string", "jobMarket": "string", "topEmployers": ["string"]}},
  "livingInfo": {{"climate": "string", "culture": "string", "housing": "string", "transportation": "string"}},
  "tips": ["string"]
}}"""

PROMPT_MY_STUDY_PATH = """You are an experienced international admissions counsellor.
Create a personalised, step-by-step study abroad pathway for this student.

Student profile:
- Name: {full_name}
- Nationality: {nationality}
- Current education level: {academic_level}
- Preferred country: {country}
- Preferred field of study: {course}
- Budget (USD per year): {budget_min} - {budget_max}
- GPA / CGPA: {current_gpa}
- IELTS: {ielts_score}, TOEFL: {toefl_score}, GRE: {gre_score}
- Target intake: {target_intake} {target_year}
- Target employer after graduation: {target_company}

Rules:
- Order the steps chronologically, starting from today, ending at arrival.
- Fit the plan to the target intake; flag deadlines that are already tight.
- Use realistic costs for the stated budget and nationality.
- Do not invent scholarship names you are not confident exist.

Return ONLY valid JSON, without markdown, comments or extra text, in exactly this format:
""" + PATHWAY_JSON_SHAPE

PROMPT_EDVISOR_PATHWAY = """You are an international education advisor.
Create a general study abroad pathway for a student who wants to study {course} at {academic_level} level in {country}.
The student's nationality is {nationality}.

Rules:
- Cover preparation, tests, applications, funding, visa and departure.
- Keep each step actionable, with 2-5 concrete tasks.
- Use realistic costs and processing times for {country}.

Return ONLY valid JSON, without markdown, comments or extra text, in exactly this format:
""" + PATHWAY_JSON_SHAPE

PROMPT_UNIGUIDE_ANALYSIS = """You are UniGuide Pro, a detailed university admissions analyst.
Analyse the student's situation below and produce a detailed pathway analysis with university recommendations,
visa requirements, scholarships, costs, language requirements, career prospects and living information.

Student request:
{request_text}

Known preferences:
- Country: {country}
- Field of study: {course}
- Academic level: {academic_level}

Return ONLY valid JSON, without markdown, comments or extra text, in exactly this format:
""" + PATHWAY_JSON_SHAPE


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: str
    name: str
    template: str


PROMPT_RECORDS: List[PromptRecord] = [
    PromptRecord("my_study_path", "MyStudyPath personalised pathway", PROMPT_MY_STUDY_PATH),
    PromptRecord("edvisor_pathway", "EdVisor country/course pathway", PROMPT_EDVISOR_PATHWAY),
    PromptRecord("uniguide_analysis", "UniGuide Pro detailed analysis", PROMPT_UNIGUIDE_ANALYSIS),
]


def get_prompt_inventory() -> List[Dict[str, str]]:
    return [
        {
            "id": record.prompt_id,
            "name": record.name,
            "version": PROMPT_REGISTRY_VERSION,
            "template": record.template,
        }
        for record in PROMPT_RECORDS
    ]


def _prompt_value(value):
    if value in (None, "", 0):
        return "not provided"
    return str(value).replace("{", "(").replace("}", ")")


def build_my_study_path_prompt(request: Dict[str, object]) -> str:
    return PROMPT_MY_STUDY_PATH.format(
        full_name=_prompt_value(request.get("fullName")),
        nationality=_prompt_value(request.get("nationality")),
        academic_level=_prompt_value(request.get("academicLevel")),
        country=_prompt_value(request.get("preferredCountry")),
        course=_prompt_value(request.get("desiredCourse")),
        budget_min=_prompt_value(request.get("budgetMin")),
        budget_max=_prompt_value(request.get("budgetMax")),
        current_gpa=_prompt_value(request.get("currentGPA")),
        ielts_score=_prompt_value(request.get("ieltsScore")),
        toefl_score=_prompt_value(request.get("toeflScore")),
        gre_score=_prompt_value(request.get("greScore")),
        target_intake=_prompt_value(request.get("targetIntake")),
        target_year=_prompt_value(request.get("targetYear")),
        target_company=_prompt_value(request.get("targetCompany")),
    )


def build_edvisor_prompt(country, course, academic_level, nationality="") -> str:
    return PROMPT_EDVISOR_PATHWAY.format(
        country=_prompt_value(country),
        course=_prompt_value(course),
        academic_level=_prompt_value(academic_level),
        nationality=_prompt_value(nationality),
    )


def build_uniguide_prompt(request_text, country="", course="", academic_level="") -> str:
    return PROMPT_UNIGUIDE_ANALYSIS.format(
        request_text=_prompt_value(request_text),
        country=_prompt_value(country),
        course=_prompt_value(course),
        academic_level=_prompt_value(academic_level),
    )


def get_prompt_metadata() -> Dict[str, object]:
    return {
        "version": PROMPT_REGISTRY_VERSION,
        "count": len(PROMPT_RECORDS),
        "ids": [record.prompt_id for record in PROMPT_RECORDS],
    }


PROMPT_BUILDERS = {
    "my_study_path": lambda fields: build_my_study_path_prompt(fields.get("request") or {}),
    "edvisor_pathway": lambda fields: build_edvisor_prompt(
        fields.get("country"), fields.get("course"), fields.get("academic_level"), fields.get("nationality", ""),
    ),
    "uniguide_analysis": lambda fields: build_uniguide_prompt(
        fields.get("request_text"), fields.get("country", ""), fields.get("course", ""), fields.get("academic_level", ""),
    ),
}


def build_prompt(kind: str, **fields) -> str:
    builder = PROMPT_BUILDERS.get(str(kind or "").strip())
    if builder is None:
        raise KeyError(f"Unknown prompt id: {kind}")
    return builder(fields)
