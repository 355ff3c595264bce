"""Test the ingestion pipeline."""
import asyncio

import httpx
import pytest

from execution.retry_handler import BackoffExecutor
from ingestion.extractor import NovelExtractor
from ingestion.fetcher import DocumentFetcher, EmptyResponseError, FetchTimeoutError, HttpStatusError
from ingestion.models import CandidateRecord, IngestionState
from ingestion.pipeline import IngestionFailedError, IngestionPipeline, NoRecordsFoundError, chunked
from monitoring.renderer import Severity
from storage.database import StorageUnavailableError
from utils.connectivity import ConnectivityMonitor, OfflineError

SOURCE = "https://novels.example/list"


def listing(count, start=0):
    entries = "".join(
        f'<div class="novel-entry"><h3 class="novel-title">Novel {i:03d}</h3>'
        f'<a class="pdf-link" href="/pdf/{i}.pdf">PDF</a></div>'
        f'<figure><img src="/covers/{i}.jpg?w=200"></figure>'
        for i in range(start, start + count)
    )
    return f"<html><body>{entries}</body></html>"


async def no_sleep(seconds):
    return None


def mock_fetcher(handler):
    return DocumentFetcher(url=SOURCE, timeout=1.0, transport=httpx.MockTransport(handler))


def html_response(body, status=200):
    return httpx.Response(status, text=body, headers={"content-type": "text/html; charset=utf-8"})


def make_pipeline(store, renderer, handler, max_attempts=3, online=True, **kwargs):
    return IngestionPipeline(
        store,
        renderer,
        fetcher=mock_fetcher(handler),
        extractor=NovelExtractor(site_origin="https://novels.example"),
        executor=BackoffExecutor(max_attempts=max_attempts, initial_delay=0.01, sleep=no_sleep),
        connectivity=ConnectivityMonitor(online=online),
        **kwargs
    )


def test_ingests_all_records(store, renderer):
    """Test a full successful run."""
    events = []
    pipeline = make_pipeline(store, renderer, lambda request: html_response(listing(120)), on_progress=events.append)

    report = asyncio.run(pipeline.run())

    assert report.total_candidates == 120
    assert report.inserted == 120
    assert report.chunks_committed == 3
    assert store.count() == 120
    assert pipeline.state == IngestionState.IDLE
    assert [e.loaded for e in events[:3]] == [1, 2, 3]
    assert events[-1].percent == 100.0
    assert renderer.progress[-1] == 100.0
    assert renderer.progress_visible is False
    assert len(renderer.messages(Severity.SUCCESS)) == 1

    first = store.page(0, 1)[0]
    assert first.name == "Novel 000"
    assert first.cover_url == "https://novels.example/covers/0.jpg"
    assert first.pdf_url == "https://novels.example/pdf/0.pdf"


def test_second_run_only_adds_new_records(store, renderer):
    """Test that re-ingesting overlapping pages skips duplicates."""
    bodies = iter([listing(10), listing(10, start=5)])
    pipeline = make_pipeline(store, renderer, lambda request: html_response(next(bodies)))

    asyncio.run(pipeline.run())
    report = asyncio.run(pipeline.run())

    assert report.inserted == 5
    assert report.duplicates == 5
    assert store.count() == 15


def test_retries_transient_failures(store, renderer):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return html_response(listing(2))

    pipeline = make_pipeline(store, renderer, handler, max_attempts=3)
    report = asyncio.run(pipeline.run())

    assert len(calls) == 3
    assert report.inserted == 2
    assert renderer.messages(Severity.ERROR) == []


def test_exhausted_retries_fail_once(store, renderer):
    """Test that a permanently failing source yields a single error notification."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="error")

    pipeline = make_pipeline(store, renderer, handler, max_attempts=4)

    with pytest.raises(IngestionFailedError) as exc_info:
        asyncio.run(pipeline.run())

    assert len(calls) == 4
    assert isinstance(exc_info.value.__cause__.last_error, HttpStatusError)
    assert pipeline.state == IngestionState.FAILED
    assert len(renderer.messages(Severity.ERROR)) == 1
    assert renderer.progress_visible is False


def test_no_records_found(store, renderer):
    pipeline = make_pipeline(store, renderer, lambda request: html_response("<html><body>Moved</body></html>"))

    with pytest.raises(NoRecordsFoundError):
        asyncio.run(pipeline.run())

    assert pipeline.state == IngestionState.FAILED
    assert store.count() == 0
    assert len(renderer.messages(Severity.ERROR)) == 1


def test_non_html_text_is_extracted_without_retrying(store, renderer):
    """Test that textual content types reach the extractor instead of being retried."""
    calls = []

    def xml_listing(request):
        calls.append(request)
        return httpx.Response(200, text=listing(3), headers={"content-type": "application/xml"})

    report = asyncio.run(make_pipeline(store, renderer, xml_listing).run())

    assert report.inserted == 3
    assert len(calls) == 1

    calls.clear()
    json_pipeline = make_pipeline(
        store,
        renderer,
        lambda request: calls.append(request) or httpx.Response(200, json={"novels": []})
    )
    with pytest.raises(NoRecordsFoundError):
        asyncio.run(json_pipeline.run())
    assert len(calls) == 1


def test_offline_does_not_fetch(store, renderer):
    calls = []
    pipeline = make_pipeline(store, renderer, lambda request: calls.append(request), online=False)

    with pytest.raises(OfflineError):
        asyncio.run(pipeline.run())

    assert calls == []
    assert len(renderer.messages(Severity.WARNING)) == 1


def test_unsafe_entries_are_skipped(store, renderer):
    body = (
        '<div class="novel-entry"><h3 class="novel-title">Good</h3><a class="pdf-link" href="/g.pdf">x</a></div>'
        '<div class="novel-entry"><h3 class="novel-title">Evil</h3><a class="pdf-link" href="javascript:alert(1)">x</a></div>'
    )
    pipeline = make_pipeline(store, renderer, lambda request: html_response(body))

    report = asyncio.run(pipeline.run())

    assert report.inserted == 1
    assert [n.name for n in store.page(0, 10)] == ["Good"]


def test_failing_insert_is_skipped(store, renderer, monkeypatch):
    """Test that a storage error for one record does not abort the chunk."""
    pipeline = make_pipeline(store, renderer, lambda request: html_response(listing(5)))
    original = pipeline._sanitize

    def sanitize(candidate):
        record = original(candidate)
        if record.name == "Novel 002":
            # Violates the non-empty name check in the schema
            return CandidateRecord(name="", cover_url="", pdf_url=record.pdf_url)
        return record

    monkeypatch.setattr(pipeline, "_sanitize", sanitize)
    report = asyncio.run(pipeline.run())

    assert report.inserted == 4
    assert report.failed == 1
    assert store.count() == 4


def test_chunks_before_failure_stay_committed(store, renderer, monkeypatch):
    """Test that merging is atomic per chunk, not per run."""
    pipeline = make_pipeline(store, renderer, lambda request: html_response(listing(120)))
    original = pipeline._merge_chunk
    calls = []

    def merge_chunk(chunk, report):
        calls.append(len(chunk))
        if len(calls) == 3:
            raise StorageUnavailableError("disk full")
        return original(chunk, report)

    monkeypatch.setattr(pipeline, "_merge_chunk", merge_chunk)

    with pytest.raises(StorageUnavailableError):
        asyncio.run(pipeline.run())

    assert store.count() == 100
    assert pipeline.state == IngestionState.FAILED


def test_fetcher_errors():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(FetchTimeoutError):
        asyncio.run(mock_fetcher(timeout).fetch())
    with pytest.raises(HttpStatusError):
        asyncio.run(mock_fetcher(lambda request: httpx.Response(404)).fetch())
    with pytest.raises(EmptyResponseError):
        asyncio.run(mock_fetcher(lambda request: html_response("   ")).fetch())
    with pytest.raises(EmptyResponseError):
        asyncio.run(mock_fetcher(
            lambda request: httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
        ).fetch())
    with pytest.raises(EmptyResponseError):
        asyncio.run(mock_fetcher(
            lambda request: httpx.Response(200, content=b"\x00\x01\x02", headers={"content-type": "text/plain"})
        ).fetch())


def test_chunked():
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 50)) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
