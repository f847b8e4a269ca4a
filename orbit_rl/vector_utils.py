import jax
import jax.numpy as jnp


# 2D vector ops. everything works on the last axis so (2,) and (B, 2) both work.


@jax.jit
def distance(a, b):
    d = a - b
    return jnp.sqrt(jnp.sum(d*d, axis=-1))


# sqrt(x^2 + y^2)
@jax.jit
def l2_norm(v):
    return jnp.sqrt(jnp.sum(v*v, axis=-1))


@jax.jit
def scale(v, scalar):
    return v * jnp.expand_dims(scalar, -1)


def add(*summands):
    total = jnp.asarray(summands[0])
    for summand in summands[1:]:
        total = total + summand
    return total


@jax.jit
def subtract(a, b):
    return a - b


@jax.jit
def dot(a, b):
    return jnp.sum(a*b, axis=-1)


@jax.jit
def unit_vector(v):
    # zero vector -> zero vector instead of nan
    norm = l2_norm(v)
    safe_norm = jnp.where(norm > 0, norm, 1.0)
    return jnp.where(jnp.expand_dims(norm > 0, -1), v / jnp.expand_dims(safe_norm, -1), jnp.zeros_like(v))
