"""Control defaults shared by ts_control and validate_ts_config."""

# Control keys and their defaults (all lowercase)
CONTROL_DEFAULTS = {
    'iterations': 10000,
    'burnin': 0,
    'thin': 1,
    'n_chains': None,
    'temperature_schedule': None,
    'penultimate_temp': 2 ** 6,
    'ultimate_temp': 1e10,
    'q': 0.0,
    'proposal_step_sizes': None,
    'prior_sd': 10.0,
    'swap_every': 1,
    'changepoint_every': 1,
    'coefficient_every': 1,
    'use_deo': False,
    'adapt_burnin': False,
    'target_accept': 0.3,
    'chunk_size': 100,
    'use_double': True,
    'seed': 42,
    'measurer': 'aic',
    'selector': 'min',
    'quiet': False,
}

# Ladder size used when neither n_chains nor temperature_schedule is given
DEFAULT_N_CHAINS = 6


def clean_config(control):
    """
    Cleans the control dict and sets defaults.
    All config keys use lowercase with underscores.

    Returns a new dict; the input is not modified.
    """
    control = dict(control or {})
    for key, default in CONTROL_DEFAULTS.items():
        control.setdefault(key, default)

    if control['n_chains'] is None:
        schedule = control['temperature_schedule']
        control['n_chains'] = len(schedule) if schedule is not None else DEFAULT_N_CHAINS

    return control
