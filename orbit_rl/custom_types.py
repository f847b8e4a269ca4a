import jax
from enum import IntEnum
from typing import NamedTuple, Tuple


# units are arbitrary sim units. the whole world fits in roughly [-1, 1]^2


class ThrustAction(IntEnum):
    NONE = 0
    FORWARD = 1
    REVERSE = 2

NUM_ACTIONS = len(ThrustAction)
OBSERVATION_SIZE = 5 # vx, vy, px, py, mass


# SoA
class OrbitingBodies(NamedTuple):
    position : jax.Array # B, 2
    velocity : jax.Array # B, 2
    mass : jax.Array # B


class Transition(NamedTuple):
    previous_observation : jax.Array # B, OBSERVATION_SIZE
    previous_action : jax.Array # B
    reward : jax.Array # B
    observation : jax.Array # B, OBSERVATION_SIZE


# kinds the metaball renderer knows how to draw
class EntityKind(IntEnum):
    QUADRATIC = 1
    NEG_QUADRATIC = 2
    LINEAR = 3
    NEG_LINEAR = 4
    ZERO = 5


class DrawableEntity(NamedTuple):
    position : Tuple[float, float]
    radius : float
    kind : EntityKind = EntityKind.QUADRATIC
