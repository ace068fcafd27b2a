"""Tests for the crawl frontier."""

from __future__ import annotations

import threading

from cache_validator.frontier import EnqueueStatus, Frontier


SEED = "https://site.test/"


class TestFrontier:
    def test_push_statuses(self):
        frontier = Frontier(SEED)

        assert frontier.push(SEED).status == EnqueueStatus.ENQUEUED
        assert frontier.push(SEED).status == EnqueueStatus.SKIPPED_SEEN
        assert frontier.push("https://other.test/").status == EnqueueStatus.SKIPPED_OTHER_ORIGIN
        frontier.close()
        assert frontier.push("https://site.test/late").status == EnqueueStatus.SKIPPED_CLOSED

        snapshot = frontier.snapshot()
        assert snapshot["enqueued"] == 1
        assert snapshot["skipped_seen"] == 1
        assert snapshot["skipped_other_origin"] == 1

    def test_concurrent_pushes_enqueue_once(self):
        frontier = Frontier(SEED)
        urls = [f"https://site.test/p{i}" for i in range(50)]
        accepted: list[str] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def push_all() -> None:
            barrier.wait()
            for result in frontier.push_many(urls):
                if result.accepted:
                    with lock:
                        accepted.append(result.url)

        threads = [threading.Thread(target=push_all) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(accepted) == sorted(urls)
        assert frontier.result().visited_pages == frozenset(urls)

    def test_images_are_deduplicated(self):
        frontier = Frontier(SEED)

        assert frontier.add_images(["https://site.test/a.png", "https://cdn.test/b.png"]) == 2
        assert frontier.add_images(["https://site.test/a.png"]) == 0
        assert frontier.result().discovered_images == {
            "https://site.test/a.png",
            "https://cdn.test/b.png",
        }

    def test_pop_times_out_when_empty(self):
        assert Frontier(SEED).pop(timeout=0.01) is None
