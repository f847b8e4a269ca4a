from orbit_rl.config import WorldConfig, AgentConfig
from orbit_rl.custom_types import ThrustAction, OrbitingBodies, Transition, DrawableEntity, EntityKind
from orbit_rl.deep_q import DeepQAgent
from orbit_rl.policy import Policy, RandomPolicy
from orbit_rl.run_logging import TrainingLog
from orbit_rl.world import OrbitWorld
