import jax.numpy as jnp
import jax.random as jrand
import numpy as np
import pytest

from orbit_rl.config import WorldConfig, AgentConfig
from orbit_rl.custom_types import OrbitingBodies, ThrustAction, EntityKind, OBSERVATION_SIZE
from orbit_rl.deep_q import DeepQAgent
from orbit_rl.environment import get_observations
from orbit_rl.policy import RandomPolicy
from orbit_rl.run_logging import TrainingLog
from orbit_rl.world import OrbitWorld


class RecordingPolicy:
    """Always picks the same action, remembers everything it was shown."""

    def __init__(self, action=ThrustAction.NONE):
        self.action = int(action)
        self.observations = []
        self.transitions = []

    def select_actions(self, observations):
        self.observations.append(observations)
        return jnp.full((observations.shape[0],), self.action, dtype=jnp.int32)

    def learn(self, transitions):
        self.transitions.append(transitions)
        return None


class PerBodyPolicy(RecordingPolicy):
    # body i always picks action i % 3

    def select_actions(self, observations):
        self.observations.append(observations)
        return (jnp.arange(observations.shape[0]) % 3).astype(jnp.int32)


def single_body_world(policy, dt_limit=None):
    config = WorldConfig(gravitational_constant=1.0, manual_body=False, max_dt=dt_limit)
    bodies = OrbitingBodies(
        position=jnp.array([[1.0, 0.0]]),
        velocity=jnp.array([[0.0, 0.0]]),
        mass=jnp.array([0.01]),
    )
    return OrbitWorld(config, policy=policy, bodies=bodies, central_mass=1.0)


def test_single_body_matches_hand_computed_step():
    world = single_body_world(RecordingPolicy(ThrustAction.NONE))
    dt = 0.01
    world.step(dt)
    # a = (-1, 0); v' = a * dt = (-0.01, 0); p' = (1, 0) + v' * dt = (0.9999, 0)
    np.testing.assert_allclose(world.bodies.velocity, [[-0.01, 0.0]], atol=1e-7)
    np.testing.assert_allclose(world.bodies.position, [[0.9999, 0.0]], atol=1e-6)
    assert world.steps == 1
    assert world.elapsed_time == pytest.approx(dt)


def test_transitions_pair_previous_observation_and_action_with_new_state():
    policy = RecordingPolicy(ThrustAction.NONE)
    world = single_body_world(policy)
    world.step(0.01)
    world.step(0.01)
    assert len(policy.transitions) == 2
    first, second = policy.transitions
    np.testing.assert_array_equal(first.previous_observation, policy.observations[0])
    np.testing.assert_array_equal(first.observation, policy.observations[1])
    np.testing.assert_array_equal(second.previous_observation, policy.observations[1])
    np.testing.assert_array_equal(first.previous_action, [int(ThrustAction.NONE)])
    # zero tangential velocity -> radial trajectory -> e == 1 -> reward 0
    np.testing.assert_allclose(first.reward, [0.0], atol=1e-5)


def test_manual_input_last_write_wins_and_is_consumed_once():
    policy = RecordingPolicy(ThrustAction.NONE)
    world = OrbitWorld(WorldConfig(num_bodies=3, manual_body=True), policy=policy)
    assert world.num_bodies == 4
    assert world.manual_body_index == 3

    world.on_manual_input(ThrustAction.FORWARD)
    world.on_manual_input(ThrustAction.REVERSE)
    world.step(0.01)
    np.testing.assert_array_equal(world.last_actions, [0, 0, 0, int(ThrustAction.REVERSE)])

    world.step(0.01)
    np.testing.assert_array_equal(world.last_actions, [0, 0, 0, int(ThrustAction.NONE)])


def test_manual_body_transitions_can_be_excluded_from_learning():
    policy = RecordingPolicy()
    world = OrbitWorld(WorldConfig(num_bodies=3, manual_body=True, learn_from_manual_body=False), policy=policy)
    world.step(0.01)
    assert policy.transitions[0].reward.shape == (3,)
    assert policy.transitions[0].previous_observation.shape == (3, OBSERVATION_SIZE)

    policy = RecordingPolicy()
    world = OrbitWorld(WorldConfig(num_bodies=3, manual_body=True, learn_from_manual_body=True), policy=policy)
    world.step(0.01)
    assert policy.transitions[0].reward.shape == (4,)


@pytest.mark.parametrize("learn_from_manual_body", [True, False])
def test_transition_rows_belong_to_their_own_body(learn_from_manual_body):
    policy = PerBodyPolicy()
    config = WorldConfig(num_bodies=4, manual_body=True, learn_from_manual_body=learn_from_manual_body)
    world = OrbitWorld(config, policy=policy)
    before = get_observations(world.bodies)
    world.on_manual_input(ThrustAction.REVERSE)
    world.step(0.01)
    after = get_observations(world.bodies)

    expected_actions = [0, 1, 2, 0, int(ThrustAction.REVERSE)]
    rows = 5 if learn_from_manual_body else 4
    transitions = policy.transitions[0]
    np.testing.assert_array_equal(transitions.previous_action, expected_actions[:rows])
    np.testing.assert_array_equal(transitions.previous_observation, before[:rows])
    np.testing.assert_array_equal(transitions.observation, after[:rows])
    np.testing.assert_array_equal(transitions.reward, world.last_rewards[:rows])
    # bodies start in different places, so a swapped row would show up
    assert len(np.unique(np.asarray(before), axis=0)) == 5


def test_drawable_entities():
    world = OrbitWorld(WorldConfig(num_bodies=5, manual_body=True), policy=RecordingPolicy())
    world.step(0.01)
    entities = world.as_drawable_entities()
    assert len(entities) == 1 + 6
    central = entities[0]
    assert central.position == (0.0, 0.0)
    assert central.radius == pytest.approx(float(world.central_mass))
    assert all(e.kind == EntityKind.QUADRATIC for e in entities[:-1])
    assert entities[-1].kind == EntityKind.NEG_QUADRATIC
    positions = np.asarray(world.bodies.position)
    masses = np.asarray(world.bodies.mass)
    for i, entity in enumerate(entities[1:]):
        assert entity.position == pytest.approx(tuple(positions[i]))
        assert entity.radius == pytest.approx(float(masses[i]))
        assert isinstance(entity.position[0], float)


def test_dt_is_clamped_only_when_max_dt_is_set():
    world = single_body_world(RecordingPolicy(), dt_limit=0.05)
    world.step(10.0)
    assert world.elapsed_time == pytest.approx(0.05)
    with pytest.raises(ValueError):
        world.step(-1.0)
    assert world.elapsed_time == pytest.approx(0.05)
    assert world.steps == 1


def test_large_dt_matches_hand_computed_step():
    world = single_body_world(RecordingPolicy(ThrustAction.NONE))
    world.step(0.5)
    # v' = (-1, 0) * 0.5 = (-0.5, 0); p' = (1, 0) + v' * 0.5 = (0.75, 0)
    np.testing.assert_allclose(world.bodies.velocity, [[-0.5, 0.0]], atol=1e-6)
    np.testing.assert_allclose(world.bodies.position, [[0.75, 0.0]], atol=1e-6)
    assert world.elapsed_time == pytest.approx(0.5)


def test_population_fixed_and_finite_with_deep_q_agent():
    log = TrainingLog()
    config = WorldConfig(num_bodies=8)
    agent_config = AgentConfig(hidden_size=16, early_sync_steps=(5,), target_sync_interval=20)
    world = OrbitWorld(config, agent_config=agent_config, key=jrand.PRNGKey(4), log=log)
    for _ in range(50):
        world.step(1 / 60)
    assert isinstance(world.policy, DeepQAgent)
    assert world.policy.steps == 50
    assert world.num_bodies == 9
    assert jnp.all(jnp.isfinite(world.bodies.position))
    assert jnp.all(jnp.isfinite(world.bodies.velocity))
    assert len(log) == 50
    df = log.to_dataframe()
    assert list(df["step"]) == list(range(1, 51))
    assert df["loss"].notna().all()


def test_body_on_origin_does_not_blow_up():
    config = WorldConfig(manual_body=False)
    bodies = OrbitingBodies(
        position=jnp.zeros((1, 2)),
        velocity=jnp.zeros((1, 2)),
        mass=jnp.array([0.01]),
    )
    agent = DeepQAgent(AgentConfig(), key=jrand.PRNGKey(0))
    world = OrbitWorld(config, policy=agent, bodies=bodies, central_mass=0.15)
    for _ in range(3):
        world.step(1 / 60)
    assert jnp.all(jnp.isfinite(world.bodies.position))
    assert agent.steps == 3


def test_random_policy_can_replace_the_agent():
    world = OrbitWorld(WorldConfig(num_bodies=4), policy=RandomPolicy(jrand.PRNGKey(0)))
    for _ in range(5):
        world.step(1 / 60)
    assert world.last_loss is None
    assert world.last_actions.shape == (5,)


def test_log_records_epsilon_that_chose_the_actions():
    log = TrainingLog()
    agent_config = AgentConfig(hidden_size=8, epsilon_start=1.0, epsilon_floor=0.0, epsilon_decay=0.5)
    world = OrbitWorld(WorldConfig(num_bodies=2), agent_config=agent_config, log=log)
    for _ in range(3):
        world.step(1 / 60)
    df = log.to_dataframe()
    np.testing.assert_allclose(df["epsilon"], [1.0, 0.5, 0.25])


def test_verbose_prints_progress(capsys):
    world = OrbitWorld(WorldConfig(num_bodies=2, verbose=True, log_every=2), agent_config=AgentConfig(hidden_size=8))
    world.step(1 / 60)
    assert capsys.readouterr().out == ""
    world.step(1 / 60)
    out = capsys.readouterr().out
    assert out.startswith("2, ")
    assert "reward" in out


def test_bad_world_config_rejected():
    with pytest.raises(ValueError):
        OrbitWorld(WorldConfig(num_bodies=0, manual_body=False))
    with pytest.raises(ValueError):
        OrbitWorld(WorldConfig(central_mass_range=(0.0, 0.2)))
    for bad in [dict(thrust=-0.01), dict(escape_margin=-0.1), dict(max_dt=0.0),
                dict(position_range=(0.5, -0.5)), dict(velocity_range=(0.1, 0.0)), dict(mass_range=(0.07, 0.0))]:
        with pytest.raises(ValueError):
            OrbitWorld(WorldConfig(**bad))
    with pytest.raises(ValueError):
        OrbitWorld(WorldConfig(num_bodies=1, manual_body=False), bodies=OrbitingBodies(
            position=jnp.zeros((2, 2)), velocity=jnp.zeros((1, 2)), mass=jnp.zeros(2)))
