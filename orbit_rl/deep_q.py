###
# deep q agent
# one q network shared by every body. each body acts on its own observation,
# and every step's transitions from all bodies are learned from as one batch.
# input: observation batch (B, 5)
# output: thrust action per body (NONE / FORWARD / REVERSE)

import jax
import jax.numpy as jnp
import jax.random as jrand
import functools
import optax
import time

from typing import NamedTuple, Optional

from orbit_rl.config import AgentConfig, validate_agent_config
from orbit_rl.custom_types import Transition, NUM_ACTIONS, OBSERVATION_SIZE
from orbit_rl.file_utils import load_model_params, save_model_params


# SoA
class QLayer(NamedTuple):
  weight : jax.Array
  bias : jax.Array

class QParams(NamedTuple):
  wi : jax.Array
  bi : jax.Array
  wo : jax.Array
  bo : jax.Array
  hidden_layers : QLayer # stacked (L, ...) so the forward pass can scan over them


class AgentState(NamedTuple):
  params : QParams
  target_params : QParams # frozen snapshot, only used for bootstrap targets
  opt_state : optax.OptState
  key : jax.Array
  steps : int # learning steps taken
  skipped_updates : jax.Array # updates dropped for non-finite loss/grads


def init_q_network(key, hidden_layers, hidden_size, input_size=OBSERVATION_SIZE, output_size=NUM_ACTIONS) -> QParams:
  input_key, hidden_key, output_key = jrand.split(key, 3)
  initializer = jax.nn.initializers.glorot_uniform()
  # batch_axis keeps fan_in/fan_out per layer instead of over the whole stack
  hidden_initializer = jax.nn.initializers.glorot_uniform(batch_axis=0)
  hidden_shape_w = (hidden_layers, hidden_size, hidden_size)
  hidden_shape_b = (hidden_layers, hidden_size)
  input_shape_w = (input_size, hidden_size)
  input_shape_b = (hidden_size,)
  output_shape_w = (hidden_size, output_size)
  output_shape_b = (output_size,)
  return QParams(
    hidden_layers=QLayer(
      weight=hidden_initializer(hidden_key, hidden_shape_w),
      bias=jnp.zeros(hidden_shape_b)
    ),
    wi = initializer(input_key, input_shape_w),
    bi = jnp.zeros(input_shape_b),
    wo = initializer(output_key, output_shape_w),
    bo = jnp.zeros(output_shape_b)
  )


@jax.jit
def q_forward(params : QParams, observations : jax.Array) -> jax.Array:
  # (B, obs) => (B, actions)
  x = jax.nn.tanh(observations @ params.wi + params.bi)
  # scanf : (carry, input_i) -> (next_carry, output_i)
  scanf = lambda x, hidden_layer : (jax.nn.tanh(x @ hidden_layer.weight + hidden_layer.bias), None)
  x = jax.lax.scan(scanf, x, params.hidden_layers)[0]
  # no activation on the output, q values aren't bounded to [-1, 1]
  return x @ params.wo + params.bo


def get_epsilon(steps, epsilon_start, epsilon_floor, epsilon_decay) -> float:
  # eps(t) = floor + (start - floor) * (1 - decay)^t
  return epsilon_floor + (epsilon_start - epsilon_floor) * (1 - epsilon_decay) ** steps


def should_sync_target(steps, target_sync_interval, early_sync_steps=()) -> bool:
  return steps in early_sync_steps or steps % target_sync_interval == 0


@jax.jit
def epsilon_greedy(key, params : QParams, observations, epsilon) -> jax.Array:
  explore_key, action_key = jrand.split(key)
  greedy_actions = jnp.argmax(q_forward(params, observations), axis=-1)
  random_actions = jrand.randint(action_key, greedy_actions.shape, 0, NUM_ACTIONS)
  explore = jrand.uniform(explore_key, greedy_actions.shape) < epsilon
  return jnp.where(explore, random_actions, greedy_actions).astype(jnp.int32)


@jax.jit
def get_bootstrap_targets(params : QParams, target_params : QParams, transitions : Transition, discount) -> jax.Array:
  # reward + gamma * Q_target(s', argmax_a Q(s', a))
  # greedy action comes from the current net, its value from the target net
  next_actions = jnp.argmax(q_forward(params, transitions.observation), axis=-1)
  next_values = jnp.take_along_axis(q_forward(target_params, transitions.observation), next_actions[:, None], axis=-1)[:, 0]
  return transitions.reward + discount * next_values


@jax.jit
def get_loss(
    params : QParams,
    previous_observation : jax.Array,
    previous_action : jax.Array,
    targets : jax.Array
    ) -> float:
  q_values = q_forward(params, previous_observation)
  chosen_q_values = jnp.take_along_axis(q_values, previous_action[:, None], axis=-1)[:, 0]
  return jnp.mean((chosen_q_values - targets)**2)


@functools.partial(jax.jit, static_argnames=["optimizer"])
def grad_update_step(
    params : QParams,
    target_params : QParams,
    opt_state : optax.OptState,
    transitions : Transition,
    discount : float,
    optimizer
    ):
  # targets are computed up front and passed into get_loss as plain inputs,
  # so value_and_grad never differentiates through them
  targets = get_bootstrap_targets(params, target_params, transitions, discount)
  loss, grads = jax.value_and_grad(get_loss)(params, transitions.previous_observation, transitions.previous_action, targets)
  updates, updated_opt_state = optimizer.update(grads, opt_state, params)
  updated_params = optax.apply_updates(params, updates)
  # non-finite loss or grads: keep the old params and optimizer state
  grads_finite = jnp.all(jnp.stack([jnp.all(jnp.isfinite(g)) for g in jax.tree_util.tree_leaves(grads)]))
  finite = jnp.isfinite(loss) & grads_finite
  keep_if_finite = lambda new, old: jnp.where(finite, new, old)
  updated_params = jax.tree_util.tree_map(keep_if_finite, updated_params, params)
  updated_opt_state = jax.tree_util.tree_map(keep_if_finite, updated_opt_state, opt_state)
  return updated_params, updated_opt_state, loss, finite


class DeepQAgent:
  # select_actions only reads params, so it works before any learning has happened.
  # nothing here blocks on the device: losses come back as jax scalars.

  def __init__(self, config : AgentConfig = AgentConfig(), key=None,
               input_size=OBSERVATION_SIZE, output_size=NUM_ACTIONS):
    validate_agent_config(config)
    self.config = config
    if key is None:
      key = jrand.PRNGKey(int(time.time()*10000) % (2**31))
    init_key, key = jrand.split(key)
    params = init_q_network(init_key, config.hidden_layers, config.hidden_size, input_size, output_size)
    self.optimizer = optax.chain(
      optax.clip_by_global_norm(config.max_grad_norm),
      optax.adam(config.learning_rate),
    )
    self.state = AgentState(
      params=params,
      target_params=params,
      opt_state=self.optimizer.init(params),
      key=key,
      steps=0,
      skipped_updates=jnp.zeros((), dtype=jnp.int32),
    )

  @property
  def params(self) -> QParams:
    return self.state.params

  @property
  def target_params(self) -> QParams:
    return self.state.target_params

  @property
  def steps(self) -> int:
    return self.state.steps

  @property
  def skipped_updates(self) -> int:
    return int(self.state.skipped_updates)

  @property
  def epsilon(self) -> float:
    return get_epsilon(self.state.steps, self.config.epsilon_start, self.config.epsilon_floor, self.config.epsilon_decay)

  def q_values(self, observations, target=False) -> jax.Array:
    params = self.state.target_params if target else self.state.params
    return q_forward(params, jnp.asarray(observations, dtype=jnp.float32))

  def select_actions(self, observations) -> jax.Array:
    observations = jnp.asarray(observations, dtype=jnp.float32)
    key, action_key = jrand.split(self.state.key)
    actions = epsilon_greedy(action_key, self.state.params, observations, self.epsilon)
    self.state = self.state._replace(key=key)
    return actions

  def learn(self, transitions : Transition) -> Optional[jax.Array]:
    if jnp.shape(transitions.reward)[0] == 0:
      return None
    transitions = Transition(
      previous_observation=jnp.asarray(transitions.previous_observation, dtype=jnp.float32),
      previous_action=jnp.asarray(transitions.previous_action, dtype=jnp.int32),
      reward=jnp.asarray(transitions.reward, dtype=jnp.float32),
      observation=jnp.asarray(transitions.observation, dtype=jnp.float32),
    )
    params, opt_state, loss, finite = grad_update_step(
      self.state.params, self.state.target_params, self.state.opt_state,
      transitions, self.config.discount, self.optimizer
    )
    steps = self.state.steps + 1
    target_params = self.state.target_params
    if should_sync_target(steps, self.config.target_sync_interval, self.config.early_sync_steps):
      target_params = params
    self.state = AgentState(
      params=params,
      target_params=target_params,
      opt_state=opt_state,
      key=self.state.key,
      steps=steps,
      skipped_updates=self.state.skipped_updates + jnp.where(finite, 0, 1),
    )
    return loss

  def sync_target(self):
    self.state = self.state._replace(target_params=self.state.params)

  def save(self, filename="params.pkl"):
    save_model_params(self.state.params, filename)

  def load(self, filename="params.pkl"):
    params = load_model_params(filename)
    self.state = self.state._replace(
      params=params,
      target_params=params,
      opt_state=self.optimizer.init(params),
    )
