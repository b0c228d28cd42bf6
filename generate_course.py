#!/usr/bin/env python3
"""
Automator Course Generator

Submit a course form to a running Automator API and wait for the materials.

Usage:
    python generate_course.py --subject "Leadership basics"
    python generate_course.py --subject "Comunicare" --language română --tone Socratic
    python generate_course.py --diagnostics          # Check server and Claude key
    python generate_course.py --subject "..." --output course.json
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from automator.client.poller import CoursePoller
from automator.models.course import CourseFormData
from automator.utils.errors import PollerError

load_dotenv()


def print_banner():
    print("""
╔══════════════════════════════════════════════════════════════╗
║                 📚  AUTOMATOR COURSE GENERATOR                ║
║                                                              ║
║     Lesson plans, slides, trainer notes and exercises        ║
╚══════════════════════════════════════════════════════════════╝
""")


def print_progress(status: dict[str, Any]) -> None:
    percent = status.get("progressPercent", 0)
    bar = "█" * (percent // 5) + "░" * (20 - percent // 5)
    print(f"\r   [{bar}] {percent:3d}%  {status.get('statusMessage', '')[:50]:<50}", end="", flush=True)


async def run_diagnostics(poller: CoursePoller) -> bool:
    print("🔍 Running diagnostics...")
    results = await poller.run_diagnostics()

    ok = True
    for name, result in results.items():
        passed = bool(result.get("success"))
        ok = ok and passed
        detail = result.get("error") or result.get("model") or result.get("message", "")
        print(f"   {'✅' if passed else '❌'} {name}: {detail}")
    return ok


async def run_generation(poller: CoursePoller, form: CourseFormData, output: Optional[Path]):
    print(f"📋 Subject: {form.subject}")
    print(f"🌐 Language: {form.language}")
    print(f"⏱️  Duration: {form.duration or '-'}")
    print()
    print("🚀 Starting generation...")

    try:
        result = await poller.generate(form, on_progress=print_progress)
    except PollerError as e:
        print()
        print(f"❌ Generation failed: {e}")
        details = getattr(e, "details", None)
        if details:
            print(f"   Details: {json.dumps(details, ensure_ascii=False)}")
        return None

    print()
    print()
    print("=" * 60)
    print("✅ COURSE MATERIALS GENERATED")
    print("=" * 60)

    sections = result.get("data", {}).get("sections", [])
    for section in sections:
        print()
        print(f"📄 {section['title']} ({section['type']})")
        print(f"   {section['content'][:200]}...")

    if output:
        output.write_text(json.dumps(result, ensure_ascii=False, indent=2), encoding="utf-8")
        print()
        print(f"📁 Saved to: {output}")

    return result


async def run(args: argparse.Namespace) -> int:
    async with CoursePoller(args.api_url, token=args.token) as poller:
        if args.diagnostics:
            return 0 if await run_diagnostics(poller) else 1

        form = CourseFormData(
            subject=args.subject,
            level=args.level,
            audience=args.audience,
            duration=args.duration,
            tone=args.tone,
            language=args.language,
            context=args.context,
            generation_type="Complet" if args.complete else "Preview",
        )
        result = await run_generation(poller, form, args.output)
        return 0 if result else 1


def main():
    parser = argparse.ArgumentParser(description="Automator Course Generator")
    parser.add_argument("--api-url", default=os.getenv("AUTOMATOR_API_URL", "http://localhost:8000"))
    parser.add_argument("--token", default=os.getenv("AUTOMATOR_TOKEN"), help="Supabase access token")
    parser.add_argument("--subject", help="Course subject")
    parser.add_argument("--level", default="Intermediate")
    parser.add_argument("--audience", default="Professionals")
    parser.add_argument("--duration", default="1 day")
    parser.add_argument("--tone", default="Professional")
    parser.add_argument("--language", default="english")
    parser.add_argument("--context", default="Corporate")
    parser.add_argument("--complete", action="store_true", help="Request the complete (non-preview) version")
    parser.add_argument("--output", type=Path, help="Write the final result as JSON")
    parser.add_argument("--diagnostics", action="store_true", help="Check server connectivity and Claude key")
    args = parser.parse_args()

    if not args.diagnostics and not (args.subject and args.subject.strip()):
        parser.error("--subject is required")

    print_banner()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
