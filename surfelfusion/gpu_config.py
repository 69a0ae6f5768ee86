"""Thread and block counts for the tracking reductions, per GPU model."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import NamedTuple


class LaunchConfig(NamedTuple):
    """Threads per block and number of blocks for one kernel."""

    threads: int
    blocks: int


_L = LaunchConfig

# device -> (ICP step, RGB step, RGB residual, SO3 step)
_DEVICES: dict[str, tuple[LaunchConfig, LaunchConfig, LaunchConfig, LaunchConfig]] = {
    "GeForce GTX 780 Ti": (_L(128, 112), _L(128, 112), _L(256, 336), _L(160, 64)),
    "GeForce GTX 880M": (_L(512, 16), _L(512, 16), _L(256, 64), _L(384, 16)),
    "GeForce GTX 980": (_L(512, 32), _L(160, 64), _L(128, 512), _L(240, 48)),
    "GeForce GTX 970": (_L(128, 48), _L(160, 64), _L(128, 272), _L(96, 64)),
    "GeForce GTX 965M": (_L(256, 32), _L(224, 16), _L(384, 480), _L(160, 32)),
    "GeForce GTX 675MX": (_L(128, 80), _L(128, 48), _L(128, 80), _L(128, 32)),
    "Quadro K620M": (_L(32, 48), _L(128, 16), _L(448, 48), _L(32, 48)),
    "GeForce GTX TITAN": (_L(128, 96), _L(112, 96), _L(256, 416), _L(128, 64)),
    "GeForce GTX TITAN X": (_L(256, 96), _L(256, 64), _L(96, 496), _L(432, 48)),
    "GeForce GTX 980 Ti": (_L(320, 64), _L(128, 96), _L(224, 384), _L(432, 48)),
    "GeForce GTX 1070": (_L(64, 240), _L(128, 96), _L(256, 464), _L(256, 48)),
}

_TABLE_NAMES = ("ICP Step", "RGB Step", "RGB Res", "SO3 Step")


@dataclass(frozen=True)
class GPUConfig:
    """Launch configurations for the four tracking reductions."""

    icp_step: LaunchConfig = field(default_factory=lambda: LaunchConfig(128, 112))
    rgb_step: LaunchConfig = field(default_factory=lambda: LaunchConfig(128, 112))
    rgb_res: LaunchConfig = field(default_factory=lambda: LaunchConfig(256, 336))
    so3_step: LaunchConfig = field(default_factory=lambda: LaunchConfig(160, 64))

    @classmethod
    def for_device(cls, name, stream=None) -> "GPUConfig":
        """Return the tuned configuration for the GPU called ``name``.

        An unknown device keeps the defaults, and a note is written to
        ``stream`` (standard output by default) for each missing table.
        """
        entry = _DEVICES.get(name)
        if entry is not None:
            return cls(*entry)
        out = stream if stream is not None else sys.stdout
        for table in _TABLE_NAMES:
            print(
                f'Your GPU "{name}" isn\'t in the {table} performance '
                "database, please add it",
                file=out,
            )
        return cls()

    @classmethod
    def known_devices(cls) -> list[str]:
        """Names of the GPUs with tuned configurations, sorted."""
        return sorted(_DEVICES)