"""Test the terminal renderer."""
import io

from rich.console import Console

from ingestion.models import Novel
from monitoring.renderer import COVER_PLACEHOLDER, ConsoleRenderer, Severity


def make_renderer():
    output = io.StringIO()
    console = Console(file=output, width=200, force_terminal=False, color_system=None)
    return ConsoleRenderer(console), output


def test_append_page_numbers_rows_and_uses_placeholder():
    renderer, output = make_renderer()
    novels = [
        Novel(id=1, name="Alpha [Vol. 1]", cover_url="", pdf_url="https://x.example/a.pdf", timestamp=1),
        Novel(id=2, name="Beta", cover_url="https://x.example/b.jpg", pdf_url="https://x.example/b.pdf", timestamp=1),
    ]

    renderer.append_page(novels)

    text = output.getvalue()
    assert "Alpha [Vol. 1]" in text
    assert COVER_PLACEHOLDER in text
    assert "https://x.example/b.jpg" in text
    assert renderer.displayed == 2

    renderer.clear_results()
    assert renderer.displayed == 0


def test_notify_and_progress_lifecycle():
    renderer, output = make_renderer()

    renderer.show_progress()
    assert renderer.progress.active
    renderer.update_progress(40)
    renderer.update_progress(100)
    renderer.hide_progress()
    assert not renderer.progress.active

    renderer.notify("Loaded 3 novels.", Severity.SUCCESS)
    renderer.notify("No results for '[x]'.", "info")

    text = output.getvalue()
    assert "Loaded 3 novels." in text
    assert "No results for '[x]'." in text
