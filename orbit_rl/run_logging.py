import os
import jax
import pandas as pd
from matplotlib import pyplot as plt

from orbit_rl.file_utils import next_run_folder, save_model_params


##                ###
##  -  logging  -  ##
###                ##

COLUMNS = ["step", "mean_reward", "mean_eccentricity", "loss", "epsilon"]


class TrainingLog:
  # one row per world step. values stay jax scalars until to_dataframe, so recording never blocks

  def __init__(self):
    self.rows = []

  def __len__(self):
    return len(self.rows)

  def record(self, step, mean_reward, mean_eccentricity, loss, epsilon):
    self.rows.append((step, mean_reward, mean_eccentricity, loss, epsilon))

  def to_dataframe(self) -> pd.DataFrame:
    to_float = lambda x: float("nan") if x is None else float(jax.device_get(x))
    data = [(int(step),) + tuple(to_float(x) for x in rest) for step, *rest in self.rows]
    return pd.DataFrame(data, columns=COLUMNS)


def plot_log(df : pd.DataFrame, folder):
  plt.figure(0)
  plt.clf()
  plt.plot(df["step"], df["mean_reward"])
  plt.title('step vs mean reward')
  plt.savefig(os.path.join(folder, "reward"))
  plt.figure(1)
  plt.clf()
  plt.plot(df["step"], df["loss"])
  plt.title('step vs loss')
  plt.savefig(os.path.join(folder, "loss"))
  plt.close("all")


def save_run(policy, log : TrainingLog, train_runs_folder="./train_runs"):
  # train_runs/<n>/{params.pkl, data.csv, reward.png, loss.png}
  current_run_folder = next_run_folder(train_runs_folder)
  if hasattr(policy, "params"):
    save_model_params(policy.params, os.path.join(current_run_folder, "params.pkl"))
  df = log.to_dataframe()
  df.to_csv(os.path.join(current_run_folder, "data.csv"))
  if len(df) > 0:
    plot_log(df, current_run_folder)
  return current_run_folder
