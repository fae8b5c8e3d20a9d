from __future__ import annotations

from tqdm import tqdm


def byte_progress(total: int, desc: str, enabled: bool = False) -> tqdm:
    return tqdm(
        total=total,
        desc=desc,
        unit="B",
        unit_scale=True,
        unit_divisor=1024,
        leave=True,
        disable=not enabled,
    )
