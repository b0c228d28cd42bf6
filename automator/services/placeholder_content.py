"""Deterministic placeholder sections for jobs whose real output is unavailable."""

from automator.models.course import CourseContent, CourseFormData, Section
from automator.services.content_parser import section_title

_PREVIEW_NOTE = {
    "ro": "Aceasta este o versiune preview. Pentru versiunea completă, faceți upgrade la un abonament plătit.",
    "en": "This is a preview version. Upgrade to a paid plan for the complete version.",
}

_BODIES = {
    "lesson-plan": {
        "ro": (
            "Curs: {subject}\nNivel: {level}\nPublic țintă: {audience}\nDurată: {duration}\n\n"
            "Obiective de învățare:\n1. Înțelegerea conceptelor de bază\n"
            "2. Dezvoltarea abilităților practice\n\n"
            "Structura cursului:\nModulul 1: Introducere\nModulul 2: Concepte fundamentale"
        ),
        "en": (
            "Course: {subject}\nLevel: {level}\nTarget audience: {audience}\nDuration: {duration}\n\n"
            "Learning objectives:\n1. Understand the core concepts\n"
            "2. Develop practical skills\n\n"
            "Course structure:\nModule 1: Introduction\nModule 2: Fundamental concepts"
        ),
    },
    "slides": {
        "ro": (
            "Slide 1: {subject}\nPrezentați-vă și stabiliți obiectivele cursului.\n\n"
            "Slide 2: Concepte cheie\nIntroduceți ideile principale ale temei."
        ),
        "en": (
            "Slide 1: {subject}\nIntroduce yourself and set the course objectives.\n\n"
            "Slide 2: Key concepts\nPresent the main ideas of the topic."
        ),
    },
    "trainer-notes": {
        "ro": (
            "Ghid pentru trainer ({tone}):\nAcest curs este conceput pentru a fi interactiv "
            "și practic. Adaptați exemplele la contextul {context}."
        ),
        "en": (
            "Trainer guide ({tone}):\nThis course is designed to be interactive and practical. "
            "Adapt the examples to the {context} context."
        ),
    },
    "exercises": {
        "ro": (
            "Exercițiul 1: Analiză de caz\nStudiați un scenariu legat de {subject} și "
            "identificați conceptele cheie aplicate."
        ),
        "en": (
            "Exercise 1: Case analysis\nStudy a scenario related to {subject} and identify "
            "the key concepts it applies."
        ),
    },
}


def build_placeholder_sections(form_data: CourseFormData) -> list[Section]:
    """
    Build the four typed placeholder sections for a form.

    Output depends only on the form, so repeated calls agree.
    """
    locale = form_data.locale
    values = {
        "subject": form_data.subject,
        "level": form_data.level or "-",
        "audience": form_data.audience or "-",
        "duration": form_data.duration or "-",
        "tone": form_data.tone or "-",
        "context": form_data.context or "-",
    }

    sections = []
    for section_type, bodies in _BODIES.items():
        content = bodies[locale].format(**values)
        if form_data.is_preview:
            content = f"{_PREVIEW_NOTE[locale]}\n\n{content}"
        sections.append(
            Section(
                type=section_type,
                title=section_title(section_type, locale),
                content=content,
            )
        )
    return sections


def build_placeholder_content(form_data: CourseFormData) -> CourseContent:
    return CourseContent(sections=build_placeholder_sections(form_data))
