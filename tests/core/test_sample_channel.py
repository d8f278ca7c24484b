from __future__ import annotations

import threading

from exposure_meter.core.sample_channel import LatestSampleChannel, LightSample, SampleSource


def test_channel_keeps_only_the_latest_sample() -> None:
    channel = LatestSampleChannel()

    assert channel.offer(LightSample(SampleSource.CAMERA, 10.0)) is False
    assert channel.offer(LightSample(SampleSource.CAMERA, 11.0)) is True
    assert len(channel) == 1

    assert channel.take() == LightSample(SampleSource.CAMERA, 11.0)
    assert channel.take() is None
    assert channel.dropped == 1


def test_clear_discards_pending_sample() -> None:
    channel = LatestSampleChannel()
    channel.offer(LightSample(SampleSource.INCIDENT, 9.0))

    channel.clear()

    assert channel.take() is None


def test_concurrent_producers_never_queue_more_than_one() -> None:
    channel = LatestSampleChannel()

    def produce(base: int) -> None:
        for index in range(200):
            channel.offer(LightSample(SampleSource.CAMERA, float(base + index)))

    threads = [threading.Thread(target=produce, args=(base,)) for base in (0, 1000, 2000)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(channel) == 1
    assert channel.take() is not None
    assert channel.dropped == 599
