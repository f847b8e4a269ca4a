import jax
import jax.numpy as jnp
import jax.random as jrand

from typing import Optional, Protocol

from orbit_rl.custom_types import Transition, NUM_ACTIONS


class Policy(Protocol):
    # what OrbitWorld needs from whatever is choosing thrust

    def select_actions(self, observations) -> jax.Array:
        ...

    def learn(self, transitions : Transition) -> Optional[jax.Array]:
        ...


class RandomPolicy:
    # uniformly random thrust, never learns. baseline for comparing against DeepQAgent

    def __init__(self, key=None):
        self.key = jrand.PRNGKey(0) if key is None else key
        self.steps = 0

    @property
    def epsilon(self) -> float:
        return 1.0

    def select_actions(self, observations) -> jax.Array:
        self.key, action_key = jrand.split(self.key)
        return jrand.randint(action_key, (jnp.shape(observations)[0],), 0, NUM_ACTIONS).astype(jnp.int32)

    def learn(self, transitions : Transition) -> Optional[jax.Array]:
        return None
