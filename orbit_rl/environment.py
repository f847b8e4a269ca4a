import jax
import jax.numpy as jnp
import jax.random as jrand

from orbit_rl.custom_types import OrbitingBodies, ThrustAction
from orbit_rl.vector_utils import l2_norm, scale, unit_vector, dot, add, subtract


# SIMULATION
# one fixed central mass at the origin, B bodies that only feel the central mass.
# bodies don't attract each other.
# integration: semi-implicit euler (new velocity is used for the position update),
# which keeps orbits from slowly spiralling outwards like explicit euler does.

MIN_GRAV_PARAM = 1e-12 # keeps eccentricity finite when mu == 0

# plain ints, jnp comparisons choke on IntEnum members
NONE, FORWARD, REVERSE = (int(a) for a in ThrustAction)


def init_bodies(key, count, position_range=(-0.9, 0.9), velocity_range=(-0.25, 0.25), mass_range=(0.0, 0.07)) -> OrbitingBodies:
    position_key, velocity_key, mass_key = jrand.split(key, 3)
    return OrbitingBodies(
        position=jrand.uniform(position_key, (count, 2), minval=position_range[0], maxval=position_range[1]),
        velocity=jrand.uniform(velocity_key, (count, 2), minval=velocity_range[0], maxval=velocity_range[1]),
        mass=jrand.uniform(mass_key, (count,), minval=mass_range[0], maxval=mass_range[1]),
    )


def init_central_mass(key, central_mass_range=(0.1, 0.2)):
    return jrand.uniform(key, (), minval=central_mass_range[0], maxval=central_mass_range[1])


@jax.jit
def grav_param(gravitational_constant, central_mass):
    return gravitational_constant * central_mass


@jax.jit
def gravity_acceleration(position, mu, min_radius=1e-3):
    # a = -(mu / r^2) * unit(position)
    # r is clamped so a body sitting on the origin doesn't get an infinite kick
    radius = jnp.maximum(l2_norm(position), min_radius)
    gravity_magnitude = mu / (radius * radius)
    return scale(unit_vector(position), -gravity_magnitude)


@jax.jit
def escape_velocity(position, mu, min_radius=1e-3):
    radius = jnp.maximum(l2_norm(position), min_radius)
    return jnp.sqrt(2 * mu / radius)


@jax.jit
def thrust_acceleration(position, velocity, action, mu, thrust, escape_margin=0.05, min_radius=1e-3):
    speed = l2_norm(velocity)
    # forward thrust is a no-op once the body is about to escape
    can_speed_up = speed <= escape_velocity(position, mu, min_radius) - escape_margin
    direction = jnp.where(action == FORWARD, jnp.where(can_speed_up, 1.0, 0.0),
                jnp.where(action == REVERSE, -1.0, 0.0))
    return scale(unit_vector(velocity), direction * thrust)


@jax.jit
def step_bodies(bodies : OrbitingBodies, actions, mu, dt, thrust, escape_margin=0.05, min_radius=1e-3) -> OrbitingBodies:
    # v' = v + (a_gravity + a_thrust) * dt
    # p' = p + v' * dt
    acceleration = add(
        gravity_acceleration(bodies.position, mu, min_radius),
        thrust_acceleration(bodies.position, bodies.velocity, actions, mu, thrust, escape_margin, min_radius),
    )
    new_velocity = bodies.velocity + acceleration * dt
    new_position = bodies.position + new_velocity * dt
    return OrbitingBodies(
        position=new_position,
        velocity=new_velocity,
        mass=bodies.mass,
    )


@jax.jit
def eccentricity(position, velocity, mu, min_radius=1e-3):
    # https://en.wikipedia.org/wiki/Eccentricity_vector
    # e = ((|v|^2 / mu - 1 / |r|) * r) - ((r . v) / mu) * v
    mu = jnp.maximum(mu, MIN_GRAV_PARAM)
    radius = jnp.maximum(l2_norm(position), min_radius)
    position_scale = dot(velocity, velocity) / mu - 1 / radius
    velocity_scale = dot(position, velocity) / mu
    eccentricity_vector = subtract(scale(position, position_scale), scale(velocity, velocity_scale))
    return l2_norm(eccentricity_vector)


@jax.jit
def get_reward(bodies : OrbitingBodies, mu, min_reward=-10.0, min_radius=1e-3):
    # 0 eccentricity (circular) -> 1. elongated/escaping orbits go negative.
    e = eccentricity(bodies.position, bodies.velocity, mu, min_radius)
    return jnp.maximum(1 - e, min_reward)


@jax.jit
def get_observations(bodies : OrbitingBodies):
    # (B, 5): vx, vy, px, py, mass
    return jax.lax.concatenate([
        bodies.velocity,
        bodies.position,
        bodies.mass[:, None],
        ],
        dimension=1
    )
