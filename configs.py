from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class RuntimeConfig:
    asset_dir: str = "assets/model"
    results_dir: str = "results"
    input_size: int = 256
    max_frames: int = 50
    sampling_mode: str = "random"
    seed: Optional[int] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "RuntimeConfig":
        """Build from a parsed config.json; supports nested and flat (legacy) layouts."""
        def path_get(k, default):
            return (cfg.get("paths", {}) or {}).get(k) or cfg.get(k) or default

        def rt_get(k, default=None):
            return (cfg.get("runtime", {}) or {}).get(k, cfg.get(k, default))

        seed = rt_get("seed", None)
        return cls(
            asset_dir=path_get("asset_dir", cls.asset_dir),
            results_dir=path_get("results_dir", cls.results_dir),
            input_size=int(rt_get("input_size", cls.input_size)),
            max_frames=int(rt_get("max_frames", cls.max_frames)),
            sampling_mode=str(rt_get("sampling_mode", cls.sampling_mode)),
            seed=None if seed is None else int(seed),
        )
