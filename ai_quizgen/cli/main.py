from __future__ import annotations

import asyncio
import inspect
import json
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from ..adapters.env_loader import EnvLoader
from ..adapters.gemini_transport import GeminiTransport
from ..adapters.mock_transport import MockTransport
from ..adapters.preferences_store import PreferencesStore
from ..core.config import settings_loader
from ..core.errors import GeminiAPIError
from ..core.generator import QuizGenerator
from ..core.logging_utils import configure_logging
from ..core.orchestrator import GeminiOrchestrator
from ..core.runtime_data import get_runtime_paths

app = typer.Typer()

MOCK_API_KEY = "mock-gemini-key"


def _use_mocks() -> bool:
    return os.environ.get("AI_QUIZGEN_ENV", "real").lower() == "mock"


def _build_orchestrator() -> GeminiOrchestrator:
    paths = get_runtime_paths()
    configure_logging(os.environ.get("AI_QUIZGEN_LOG_LEVEL", "WARNING").upper(), paths.log_path)
    settings = settings_loader.load()
    use_mocks = _use_mocks()
    transport = MockTransport() if use_mocks else GeminiTransport(settings.base_url)
    return GeminiOrchestrator(
        transport=transport,
        key_store=PreferencesStore(paths.preferences_path),
        env_source=EnvLoader(),
        settings=settings,
        api_key=MOCK_API_KEY if use_mocks else None,
    )


def _run_with_orchestrator(action):
    """Run ``action(orchestrator)`` on a fresh event loop and close the transport after."""

    async def _run():
        orchestrator = _build_orchestrator()
        try:
            result = action(orchestrator)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            await orchestrator.aclose()

    return asyncio.run(_run())


@app.command("generate")
def generate(
    source: Path,
    count: int = 5,
    types: str = "single-choice",
    difficulty: str = "mixed",
    output: Path = None,
) -> None:
    """Generate quiz questions from a text file.

    Args:
        source: Path to a plain-text file with the study material
        count: Number of questions to ask for (clamped to 1-20)
        types: Comma-separated question types (single-choice, multi-choice, text-input)
        difficulty: easy, medium, hard or mixed
        output: Write the JSON result here instead of printing it
    """
    if not source.exists():
        typer.echo(f"❌ File not found: {source}")
        raise typer.Exit(1)

    content = source.read_text(encoding="utf-8")
    options = {
        "question_count": count,
        "question_types": [t.strip() for t in types.split(",") if t.strip()],
        "difficulty": difficulty,
    }

    result = _run_with_orchestrator(
        lambda orchestrator: QuizGenerator(orchestrator, orchestrator.settings).generate(
            content, options
        )
    )
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)

    if not result.success:
        typer.echo(f"❌ Generation failed: {result.error}")
        raise typer.Exit(1)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload, encoding="utf-8")
        typer.echo(f"✅ {len(result.questions)} question(s) written to {output}")
    else:
        typer.echo(payload)


@app.command("key:set")
def key_set(key: str) -> None:
    """Validate a Gemini API key with a probe request and store it."""
    try:
        saved = _run_with_orchestrator(lambda orchestrator: orchestrator.set_key(key))
    except GeminiAPIError as e:
        typer.echo(f"❌ {e.message}")
        raise typer.Exit(1)

    if not saved:
        typer.echo("❌ API key validation failed. The key was not saved.")
        raise typer.Exit(1)
    typer.echo("✅ API key validated and saved")


@app.command("key:status")
def key_status() -> None:
    """Show whether an API key is configured."""
    status = _run_with_orchestrator(lambda orchestrator: orchestrator.key_status())
    if status.has_key:
        typer.echo(f"🔑 API key configured: {status.key_preview}")
    else:
        typer.echo("❌ No API key configured. Set GEMINI_API_KEY or run key:set.")


@app.command("test-connection")
def test_connection() -> None:
    """Send a small request to check the key and the connection."""
    try:
        _run_with_orchestrator(lambda orchestrator: orchestrator.test_connection())
    except GeminiAPIError as e:
        typer.echo(f"❌ {e.message}")
        raise typer.Exit(1)
    typer.echo("✅ Connection to the Gemini API is working")


@app.command("capabilities")
def capabilities() -> None:
    """Print generation limits, supported question types and key status."""
    caps = _run_with_orchestrator(
        lambda orchestrator: QuizGenerator(orchestrator, orchestrator.settings).capabilities()
    )
    typer.echo(json.dumps(caps, indent=2))


if __name__ == "__main__":
    app()
