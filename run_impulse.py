# run_impulse.py - centre impulse on the default grid, saves a snapshot figure
from simulations.center_impulse import run_center_impulse
from visualization.field_plots import plot_flow_field
import numpy as np

num_steps = 50
save_every = 10

solver = run_center_impulse(num_steps=1, drag=(2.0, 1.0), verbose=False)
print(f"Parameters: dim={solver.dim}, dt={solver.dt}, visc={solver.visc}, "
      f"radius={solver.force_radius}")

energy = []
for step in range(num_steps):
    solver.step()
    energy.append(solver.get_kinetic_energy())

    if (step + 1) % save_every == 0:
        print(f"Step {step+1}: E = {energy[-1]:.4e}, "
              f"spectral div = {solver.get_spectral_divergence():.2e}, "
              f"max |u| = {solver.get_velocity_magnitude().max():.4e}")

plot_flow_field(solver, save_path="results/center_impulse.png",
                title_suffix=f"(step {solver.step_count})")

decay = energy[-1] / energy[0] if energy[0] > 0 else float("nan")
print(f"\nEnergy ratio over {num_steps} steps: {decay:.4f}")
print(f"Monotone decay: {'Yes' if np.all(np.diff(energy) <= 0) else 'No'}")
print(f"Steps per second: {solver.step_count / solver.total_time:.1f}")
