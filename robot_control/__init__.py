"""Robot Control - LQR balancing and particle filter localization

Two classical robotics algorithms with a shared plant interface, runnable
headlessly from Python or the command line.

## Components

### State-Space Model (model.py)
Linearized inverted pendulum on a cart and its Euler discretization.
- State: [x, x_dot, theta, theta_dot]
- A_d = I + A_c dt, B_d = B_c dt

### LQR Controller (lqr.py)
Discrete Algebraic Riccati Equation solved by fixed-point iteration from P0 = Q.
- Tolerance-based pseudo-inverse of R + BᵀPB
- Gain K = (R + BᵀPB)⁺(BᵀPA), control u = -K x
- Non-convergence logged (or raised with strict=True)

### PID Controller (pid.py)
Alternate balancing strategy acting on the bar angle.

### Particle Filter (localizer.py)
SIR localization from noisy odometry and range-only landmark observations.
- Gaussian range likelihood reweighting
- Weighted mean estimate and 3×3 covariance
- Systematic resampling when N_eff < NP/2

### Simulation (simulation.py)
Headless lock-step driver with typed snapshots for pendulum and vehicle runs.

## Modules
- `config.py` - Centralized configuration parameters with documentation
- `errors.py` - Error hierarchy
- `linalg.py` - Shape-checked matrix helpers and pseudo-inverse
- `metrics.py` - RMS and tracking summaries
- `cli.py` - Command-line interface and logging setup

## Quick Start

```python
import numpy as np
from robot_control import PendulumModel, discretize, lqr_gain, LQRSettings

A, B = discretize(PendulumModel(), dt=0.1)
s = LQRSettings()
K = lqr_gain(A, B, s.Q, s.R)
u = -K @ np.array([0.0, 0.0, 0.1, 0.0])
```

```bash
python -m robot_control pendulum --steps 50 --dt 0.1
python -m robot_control localize --steps 500 --seed 1
```
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    DegenerateWeightsError,
    InverseFailedError,
    NonConvergentError,
    NumericalError,
    RobotControlError,
)
from .localizer import (
    LocalizationStep,
    ParticleFilterLocalizer,
    ParticleFilterSettings,
    VehicleState,
    localize_particles,
    pf_localize,
    pf_step,
)
from .lqr import DareSolution, LQRController, LQRSettings, lqr_control, lqr_gain, solve_dare
from .model import PendulumModel, discretize, euler_discretize
from .pid import PIDController
from .simulation import (
    ControllerKind,
    PendulumSimulation,
    PendulumState,
    SimKind,
    Simulator,
    VehicleSimulation,
)

__all__ = [
    # Errors
    "RobotControlError",
    "NumericalError",
    "InverseFailedError",
    "NonConvergentError",
    "DegenerateWeightsError",
    "ConfigurationError",
    # Model
    "PendulumModel",
    "discretize",
    "euler_discretize",
    # Controllers
    "DareSolution",
    "LQRSettings",
    "LQRController",
    "solve_dare",
    "lqr_gain",
    "lqr_control",
    "PIDController",
    # Localization
    "ParticleFilterSettings",
    "ParticleFilterLocalizer",
    "LocalizationStep",
    "VehicleState",
    "pf_step",
    "pf_localize",
    "localize_particles",
    # Simulation
    "SimKind",
    "ControllerKind",
    "PendulumSimulation",
    "PendulumState",
    "VehicleSimulation",
    "Simulator",
]
