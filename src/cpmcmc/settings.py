"""
Proposal step-size settings.

This module defines the canonical ordering of the per-move-type proposal
scales and builds the settings vector passed to the compiled sampler.

Settings are stored in a JAX array of shape (MAX_SETTINGS,) so that changing
a step size does not trigger recompilation. Each move reads its scale by
position using the StepSlot enum.

To add a new setting:
1. Add it to StepSlot enum
2. Add default value to STEP_DEFAULTS
3. Use it in the move: settings[StepSlot.NEW_SETTING]
4. Specify in control: proposal_step_sizes={'new_setting': value}
"""

from enum import IntEnum
from typing import Dict, Optional

import numpy as np
import jax.numpy as jnp


class StepSlot(IntEnum):
    """
    Canonical slot indices for proposal settings.

    IntEnum values compile to simple integers - no runtime overhead.
    """
    CP_STEP = 0         # Largest changepoint jitter (time units) at temperature 1
    JUMP_PROB = 1       # Probability of a uniform long-range changepoint jump (0-1)
    COEF_STEP = 2       # Random-walk sd for coefficient proposals
    ADAPT_RATE = 3      # Robbins-Monro gain for burn-in step adaptation


# Default values for each setting
STEP_DEFAULTS = {
    StepSlot.CP_STEP: 3.0,
    StepSlot.JUMP_PROB: 0.1,
    StepSlot.COEF_STEP: 0.1,
    StepSlot.ADAPT_RATE: 0.05,
}

KEY_TO_SLOT = {
    'cp_step': StepSlot.CP_STEP,
    'jump_prob': StepSlot.JUMP_PROB,
    'coef_step': StepSlot.COEF_STEP,
    'adapt_rate': StepSlot.ADAPT_RATE,
}

# Total number of settings (determines vector width)
MAX_SETTINGS = len(StepSlot)


def resolve_step_sizes(step_sizes: Optional[Dict[str, float]]) -> Dict[str, float]:
    """Merge user step sizes over the defaults, keyed by setting name."""
    resolved = {name: float(STEP_DEFAULTS[slot]) for name, slot in KEY_TO_SLOT.items()}
    for key, value in (step_sizes or {}).items():
        if key not in KEY_TO_SLOT:
            raise ValueError(
                f"Unknown proposal step size '{key}'. Available: {sorted(KEY_TO_SLOT)}"
            )
        resolved[key] = float(value)
    return resolved


def build_settings_vector(step_sizes: Optional[Dict[str, float]] = None) -> jnp.ndarray:
    """
    Convert a step-size dict into the settings vector.

    Args:
        step_sizes: Dict of setting name -> value; missing names use defaults

    Returns:
        JAX array of shape (MAX_SETTINGS,)
    """
    vector = np.zeros(MAX_SETTINGS, dtype=np.float64)
    for key, value in resolve_step_sizes(step_sizes).items():
        vector[KEY_TO_SLOT[key]] = value
    return jnp.asarray(vector)
