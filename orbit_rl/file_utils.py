import os
import pickle


def load_model_params(filename):
  with open(filename, 'rb') as file:
    obj = pickle.load(file)
  return obj

def save_model_params(params, filename="params.pkl"):
  folder = os.path.dirname(filename)
  if folder:
    os.makedirs(folder, exist_ok=True)
  with open(filename, 'wb') as file:
    pickle.dump(params, file)

def next_run_folder(train_runs_folder="./train_runs"):
  # train_runs/1, train_runs/2, ...
  os.makedirs(train_runs_folder, exist_ok=True)
  existing_train_runs = [name for name in os.listdir(train_runs_folder) if name.isdigit()]
  current_run = max([int(name) for name in existing_train_runs], default=0) + 1
  current_run_folder = os.path.join(train_runs_folder, str(current_run))
  os.mkdir(current_run_folder)
  return current_run_folder
