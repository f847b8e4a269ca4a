import argparse
import time
import jax

from orbit_rl.config import WorldConfig, AgentConfig
from orbit_rl.run_logging import TrainingLog, save_run
from orbit_rl.world import OrbitWorld


# headless: steps the world at a fixed dt with nothing drawing it.
# same calls a render loop would make, minus as_drawable_entities.

def run(steps, dt=1/60, config : WorldConfig = WorldConfig(), agent_config : AgentConfig = AgentConfig(), policy=None):
  log = TrainingLog()
  world = OrbitWorld(config, policy=policy, agent_config=agent_config, log=log)
  for _ in range(steps):
    world.step(dt)
  return world, log


def main(argv=None):
  parser = argparse.ArgumentParser(description="train the orbit thrust agent without rendering")
  parser.add_argument("--steps", type=int, default=10_000)
  parser.add_argument("--dt", type=float, default=1/60)
  parser.add_argument("--bodies", type=int, default=WorldConfig().num_bodies)
  parser.add_argument("--seed", type=int, default=0)
  parser.add_argument("--out", default="./train_runs")
  parser.add_argument("--debug", action="store_true", help="disable jit and raise on nans")
  args = parser.parse_args(argv)

  if args.debug:
    jax.config.update("jax_disable_jit", True)
    jax.config.update("jax_debug_nans", True)

  config = WorldConfig(num_bodies=args.bodies, seed=args.seed, verbose=True)

  start = time.time()
  world, log = run(args.steps, args.dt, config)
  print(time.time() - start, "seconds")

  current_run_folder = save_run(world.policy, log, args.out)
  print(f"saved run to {current_run_folder}")
  return world


if __name__ == "__main__":
  main()
