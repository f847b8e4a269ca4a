from typing import NamedTuple, Optional, Tuple


class WorldConfig(NamedTuple):
    """Construction-time settings for an OrbitWorld.

    central_mass_range: central mass is drawn uniformly from this range once per run.
    gravitational_constant: mu = gravitational_constant * central_mass.
    thrust: magnitude of the thrust acceleration for FORWARD/REVERSE.
    num_bodies: agent controlled bodies. the manual body (if any) is extra.
    manual_body: add one body driven by on_manual_input instead of the policy.
    learn_from_manual_body: feed the manual body's transitions to the policy.
        defaults to True, matching the demo where every body's transition went
        into the same batch.
    escape_margin: FORWARD is ignored once speed > escape velocity - escape_margin.
    min_radius: distances from the origin are clamped to this before dividing.
    min_reward: reward = max(1 - eccentricity, min_reward).
    max_dt: if set, step(dt) clamps dt to this so a stalled frame can't fling
        bodies out. None (default) steps by exactly the dt given.
    position_range / velocity_range / mass_range: uniform init ranges per body.
    log_every: print a progress line every n steps when verbose.
    seed: PRNG seed for the world (bodies, central mass, default agent).
    """
    central_mass_range : Tuple[float, float] = (0.1, 0.2)
    gravitational_constant : float = 0.7
    thrust : float = 0.01
    num_bodies : int = 16
    manual_body : bool = True
    learn_from_manual_body : bool = True
    escape_margin : float = 0.05
    min_radius : float = 1e-3
    min_reward : float = -10.0
    max_dt : Optional[float] = None
    position_range : Tuple[float, float] = (-0.9, 0.9)
    velocity_range : Tuple[float, float] = (-0.25, 0.25)
    mass_range : Tuple[float, float] = (0.0, 0.07)
    log_every : int = 200
    verbose : bool = False
    seed : int = 0


class AgentConfig(NamedTuple):
    """Hyperparams for DeepQAgent.

    discount: gamma in reward + gamma * Q_target(s', a'). must be in [0, 1).
    epsilon_start / epsilon_floor / epsilon_decay:
        eps(t) = floor + (start - floor) * (1 - decay)^t, t = learning steps.
        start == floor gives a fixed epsilon.
    target_sync_interval: copy current params into the target every n learning steps.
    early_sync_steps: extra syncs before the first interval, to settle early learning.
    """
    discount : float = 0.95
    epsilon_start : float = 1.0
    epsilon_floor : float = 0.05
    epsilon_decay : float = 1e-4
    target_sync_interval : int = 2000
    early_sync_steps : Tuple[int, ...] = (10, 100, 500, 1000)
    learning_rate : float = 1e-3
    max_grad_norm : float = 1.0
    hidden_layers : int = 2
    hidden_size : int = 32


def validate_world_config(config : WorldConfig):
    if config.num_bodies < 0:
        raise ValueError(f"num_bodies must be >= 0, got {config.num_bodies}")
    if config.num_bodies == 0 and not config.manual_body:
        raise ValueError("world needs at least one body")
    low, high = config.central_mass_range
    if low <= 0 or high < low:
        raise ValueError(f"bad central_mass_range {config.central_mass_range}")
    if config.min_radius <= 0:
        raise ValueError(f"min_radius must be > 0, got {config.min_radius}")
    if config.max_dt is not None and config.max_dt <= 0:
        raise ValueError(f"max_dt must be > 0 or None, got {config.max_dt}")
    if config.thrust < 0:
        raise ValueError(f"thrust must be >= 0, got {config.thrust}")
    if config.escape_margin < 0:
        raise ValueError(f"escape_margin must be >= 0, got {config.escape_margin}")
    for name in ["position_range", "velocity_range", "mass_range"]:
        low, high = getattr(config, name)
        if high < low:
            raise ValueError(f"bad {name} {getattr(config, name)}")


def validate_agent_config(config : AgentConfig):
    if not 0 <= config.discount < 1:
        raise ValueError(f"discount must be in [0, 1), got {config.discount}")
    if not 0 <= config.epsilon_floor <= config.epsilon_start <= 1:
        raise ValueError(f"need 0 <= epsilon_floor <= epsilon_start <= 1, got {config.epsilon_floor}, {config.epsilon_start}")
    if not 0 <= config.epsilon_decay < 1:
        raise ValueError(f"epsilon_decay must be in [0, 1), got {config.epsilon_decay}")
    if config.target_sync_interval <= 0:
        raise ValueError(f"target_sync_interval must be > 0, got {config.target_sync_interval}")
    if config.hidden_layers < 1 or config.hidden_size < 1:
        raise ValueError("network needs at least one hidden layer of size >= 1")
