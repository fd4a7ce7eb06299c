"""
Fake job generation for demos and tests
"""

import random
import string
import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DemoJob:
    """Sample job payload"""
    hello: str
    world: int
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])


def create_demo_job(rng: random.Random | None = None) -> DemoJob:
    """Create a job with random contents"""
    rng = rng or random
    return DemoJob(
        hello="".join(rng.choices(string.ascii_letters, k=rng.randint(1, 8))),
        world=rng.randint(0, 2**31 - 1),
    )


def create_demo_jobs(count: int, seed: int | None = None) -> list[DemoJob]:
    """Create ``count`` jobs; the same seed gives the same payloads"""
    rng = random.Random(seed)
    return [create_demo_job(rng) for _ in range(count)]
