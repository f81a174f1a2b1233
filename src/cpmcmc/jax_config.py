"""
Process-level JAX settings, applied before JAX is first imported.

Compiled sampler chunks depend only on RunParams and array shapes, so the
same (k, ladder size, chunk size, dataset shape) combination is reused
across sessions through JAX's persistent compilation cache.

Environment:
    CPMCMC_CACHE_DIR - cache location (default ~/.cache/jax/cpmcmc_cache);
                       set to an empty string to leave the cache off
"""
import os
from pathlib import Path

# Hide XLA C++ info logs; warnings and errors still show
os.environ.setdefault('TF_CPP_MIN_LOG_LEVEL', '2')

_cache_setting = os.environ.get("CPMCMC_CACHE_DIR")
if _cache_setting is None:
    _cache_setting = str(Path.home() / ".cache" / "jax" / "cpmcmc_cache")

if _cache_setting:
    try:
        Path(_cache_setting).mkdir(parents=True, exist_ok=True)
    except OSError:
        # Read-only home: run without the persistent cache
        _cache_setting = ""

if _cache_setting:
    os.environ.setdefault("JAX_COMPILATION_CACHE_DIR", _cache_setting)
    # Only chunks that take a while to compile are worth writing to disk
    os.environ.setdefault("JAX_PERSISTENT_CACHE_MIN_COMPILE_TIME_SECS", "1.0")
