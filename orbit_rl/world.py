import jax
import jax.numpy as jnp
import jax.random as jrand
import numpy as np
from typing import List, Optional

from orbit_rl.config import WorldConfig, AgentConfig, validate_world_config
from orbit_rl.custom_types import OrbitingBodies, Transition, ThrustAction, DrawableEntity, EntityKind
from orbit_rl.deep_q import DeepQAgent
from orbit_rl.environment import (
    init_bodies, init_central_mass, grav_param, step_bodies,
    get_reward, get_observations, eccentricity,
)
from orbit_rl.policy import Policy
from orbit_rl.run_logging import TrainingLog


class OrbitWorld:
    # all bodies share one policy. if config.manual_body is set, the last body takes
    # on_manual_input instead (NONE when nothing was pressed).

    def __init__(self, config : WorldConfig = WorldConfig(), policy : Optional[Policy] = None,
                 agent_config : AgentConfig = AgentConfig(), key=None,
                 bodies : Optional[OrbitingBodies] = None, central_mass=None,
                 log : Optional[TrainingLog] = None):
        validate_world_config(config)
        self.config = config
        if key is None:
            key = jrand.PRNGKey(config.seed)
        body_key, mass_key, agent_key = jrand.split(key, 3)

        if bodies is None:
            count = config.num_bodies + (1 if config.manual_body else 0)
            bodies = init_bodies(body_key, count, config.position_range, config.velocity_range, config.mass_range)
        else:
            bodies = OrbitingBodies(
                position=jnp.asarray(bodies.position, dtype=jnp.float32).reshape(-1, 2),
                velocity=jnp.asarray(bodies.velocity, dtype=jnp.float32).reshape(-1, 2),
                mass=jnp.asarray(bodies.mass, dtype=jnp.float32).reshape(-1),
            )
            if not bodies.position.shape[0] == bodies.velocity.shape[0] == bodies.mass.shape[0]:
                raise ValueError("bodies position/velocity/mass disagree on body count")
            if bodies.position.shape[0] == 0:
                raise ValueError("world needs at least one body")
        if central_mass is None:
            central_mass = init_central_mass(mass_key, config.central_mass_range)

        self.bodies = bodies
        self.central_mass = jnp.asarray(central_mass, dtype=jnp.float32)
        self.mu = grav_param(config.gravitational_constant, self.central_mass)
        self.policy = policy if policy is not None else DeepQAgent(agent_config, key=agent_key)
        self.log = log

        self.steps = 0
        self.elapsed_time = 0.0
        self.last_actions = None
        self.last_rewards = None
        self.last_loss = None
        self._pending_manual_action = None

    @property
    def num_bodies(self) -> int:
        return self.bodies.position.shape[0]

    @property
    def manual_body_index(self) -> Optional[int]:
        return self.num_bodies - 1 if self.config.manual_body else None

    def on_manual_input(self, action):
        # last write before the next step wins
        self._pending_manual_action = ThrustAction(action)

    def step(self, dt):
        dt = float(dt)
        if dt < 0:
            raise ValueError(f"dt must be >= 0, got {dt}")
        if self.config.max_dt is not None:
            dt = min(dt, self.config.max_dt)
        manual_action, self._pending_manual_action = self._pending_manual_action, None

        # epsilon that picks this step's actions
        epsilon = getattr(self.policy, "epsilon", float("nan"))
        observations = get_observations(self.bodies)
        actions = self.policy.select_actions(observations)
        if self.config.manual_body:
            manual_action = ThrustAction.NONE if manual_action is None else manual_action
            actions = actions.at[-1].set(int(manual_action))

        self.bodies = step_bodies(
            self.bodies, actions, self.mu, dt,
            self.config.thrust, self.config.escape_margin, self.config.min_radius
        )
        rewards = get_reward(self.bodies, self.mu, self.config.min_reward, self.config.min_radius)
        next_observations = get_observations(self.bodies)

        transitions = Transition(
            previous_observation=observations,
            previous_action=actions,
            reward=rewards,
            observation=next_observations,
        )
        if self.config.manual_body and not self.config.learn_from_manual_body:
            transitions = jax.tree_util.tree_map(lambda x: x[:-1], transitions)
        loss = self.policy.learn(transitions)

        self.steps += 1
        self.elapsed_time += dt
        self.last_actions = actions
        self.last_rewards = rewards
        self.last_loss = loss

        if self.log is not None:
            e = eccentricity(self.bodies.position, self.bodies.velocity, self.mu, self.config.min_radius)
            self.log.record(self.steps, jnp.mean(rewards), jnp.mean(e), loss, epsilon)
        if self.config.verbose and self.steps % self.config.log_every == 0:
            self.print_progress()

    def print_progress(self):
        mean_reward = float(jnp.mean(self.last_rewards)) if self.last_rewards is not None else float("nan")
        loss = float(self.last_loss) if self.last_loss is not None else float("nan")
        epsilon = getattr(self.policy, "epsilon", float("nan"))
        skipped = getattr(self.policy, "skipped_updates", 0)
        print(f"{self.steps}, {self.elapsed_time:.2f}s, reward {mean_reward:.4f}, loss {loss:.6f}, eps {epsilon:.3f}, skipped {skipped}")

    def as_drawable_entities(self) -> List[DrawableEntity]:
        # one host transfer per frame
        positions, masses, central_mass = jax.device_get((self.bodies.position, self.bodies.mass, self.central_mass))
        positions = np.asarray(positions)
        masses = np.asarray(masses)
        entities = [DrawableEntity(position=(0.0, 0.0), radius=float(central_mass), kind=EntityKind.QUADRATIC)]
        for i in range(positions.shape[0]):
            kind = EntityKind.NEG_QUADRATIC if i == self.manual_body_index else EntityKind.QUADRATIC
            entities.append(DrawableEntity(
                position=(float(positions[i, 0]), float(positions[i, 1])),
                radius=float(masses[i]),
                kind=kind,
            ))
        return entities
