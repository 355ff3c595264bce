"""Shared fixtures for catalog tests."""
import pytest

from ingestion.models import CandidateRecord
from monitoring.renderer import Renderer, Severity
from storage.database import NovelStore


class RecordingRenderer(Renderer):
    """Renderer that remembers every call."""

    def __init__(self):
        self.pages = []
        self.clears = 0
        self.progress = []
        self.progress_visible = False
        self.notifications = []

    def append_page(self, novels):
        self.pages.append(list(novels))

    def clear_results(self):
        self.clears += 1
        self.pages = []

    def show_progress(self):
        self.progress_visible = True

    def update_progress(self, percent):
        self.progress.append(percent)

    def hide_progress(self):
        self.progress_visible = False

    def notify(self, message, severity=Severity.INFO):
        self.notifications.append((Severity(severity), message))

    def messages(self, severity):
        return [message for level, message in self.notifications if level == severity]

    @property
    def displayed(self):
        return [novel for page in self.pages for novel in page]


class FakeClock:
    def __init__(self, now_ms=1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self):
        return self.now_ms


def make_candidate(name, cover="", pdf=None):
    return CandidateRecord(
        name=name,
        cover_url=cover,
        pdf_url=pdf or f"https://novels.example/pdf/{name.lower().replace(' ', '-')}.pdf"
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    return NovelStore(tmp_path / "catalog", clock=clock)


@pytest.fixture
def renderer():
    return RecordingRenderer()
