"""Concurrency-focused tests exercising the API's per-request isolation."""

from concurrent.futures import ThreadPoolExecutor, as_completed

from fastapi.testclient import TestClient

from backend.app.main import app

client = TestClient(app)


def _post_run(payload):
    r = client.post("/run", json=payload)
    return r.status_code, r.json()


def test_concurrent_runs_isolated():
    recursion = "umukoro loop(n) {\n  let r = loop(n + 1)\n  garura r\n}\nloop(0)"
    jobs = [
        {"code": "let tag = 'a'\nexport tag"},
        {"code": "let tag = 'b'\nexport tag", "variables": {"seed": 2}},
        {"code": recursion, "settings": {"max_call_depth": 2}},
    ]

    results = []
    with ThreadPoolExecutor(max_workers=3) as ex:
        futures = [ex.submit(_post_run, j) for j in jobs]
        for fut in as_completed(futures):
            results.append(fut.result())

    assert len(results) == 3
    assert all(code == 200 for code, _ in results)

    bodies = [body for _, body in results]
    tags = sorted(b["exports"]["tag"] for b in bodies if b["errors"] is None)
    assert tags == ["a", "b"]
    failed = [b for b in bodies if b["errors"] is not None]
    assert len(failed) == 1
    assert "Call depth" in failed[0]["errors"]["message"]
    # the seed variable only belongs to the second request
    assert sum("seed" in b["variables"] for b in bodies) == 1
