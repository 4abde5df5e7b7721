"""Configuration parameters for the robot control algorithms.

This module centralizes all default parameters including:
- Inverted pendulum physical parameters
- LQR cost weights and Riccati solver settings
- PID gains
- Particle filter noise models and landmark layout
- Simulation timing
- Terminal colors for console output

All parameters are documented with their purpose, units and valid ranges.
Settings dataclasses (LQRSettings, ParticleFilterSettings) take their
defaults from here.
"""

import numpy as np

# ============================================================================
# Inverted Pendulum Physical Parameters
# ============================================================================

GRAVITY = 9.81
"""Gravitational acceleration (m/s²)."""

PENDULUM_L_BAR = 2.0
"""Length of the pendulum bar (m)."""

PENDULUM_M_CART = 1.0
"""Mass of the cart (kg)."""

PENDULUM_M_BALL = 1.0
"""Mass of the ball at the tip of the bar (kg)."""

PENDULUM_INITIAL_ANGLE_RANGE = 0.4
"""Half-width of the uniform range for a random initial bar angle (rad).

A fresh pendulum simulation starts at [0, 0, theta0, 0] with
theta0 drawn from [-0.4, 0.4).
"""


# ============================================================================
# LQR / DARE Solver Parameters
# ============================================================================

# State vector: [x, x_dot, theta, theta_dot]
LQR_Q_DIAG = [
    0.0,  # cart position (unpenalized)
    1.0,  # cart velocity
    1.0,  # bar angle
    0.0,  # bar angular velocity
]
"""State cost diagonal (must be non-negative)."""

LQR_R_DIAG = [0.01]
"""Input cost diagonal (must be strictly positive).

Small R makes control cheap, yielding an aggressive gain.
"""

LQR_EPSILON = 0.01
"""Riccati convergence tolerance and pseudo-inverse singular value cutoff.

Iteration stops once the largest absolute entry of P[n+1] - P[n] drops below
this value. The same value discards singular values of R + BᵀPB.
"""

LQR_MAX_ITER = 150
"""Upper bound on Riccati iterations per control tick."""


# ============================================================================
# PID Parameters
# ============================================================================

PID_KP = 1.0
"""Default proportional gain."""

PID_KI = 0.0
"""Default integral gain."""

PID_KD = 0.0
"""Default derivative gain."""

# Gains used when the pendulum is balanced by PID instead of LQR.
# Error is the negated bar angle, so the closed loop reads
# theta_ddot = g(M+m)/(l M) * theta - (KP * theta + KD * theta_dot) / (l M).
PENDULUM_PID_KP = 40.0
"""Proportional gain on bar angle for the PID-balanced pendulum."""

PENDULUM_PID_KI = 0.0
"""Integral gain on bar angle for the PID-balanced pendulum."""

PENDULUM_PID_KD = 10.0
"""Derivative gain on bar angle for the PID-balanced pendulum."""


# ============================================================================
# Particle Filter Parameters
# ============================================================================

PF_NUM_PARTICLES = 100
"""Number of particles (NP)."""

PF_MAX_RANGE = 20.0
"""Maximum sensing range for landmark observations (m).

A landmark at exactly this distance is observed.
"""

PF_RESAMPLE_RATIO = 0.5
"""Resampling trigger as a fraction of NP (range: (0, 1]).

Resample when N_eff < NP * PF_RESAMPLE_RATIO.
"""

# Observation synthesis ("true" sensor model)
PF_Q_SIM = 0.2
"""Range measurement noise variance used to synthesize observations (m²)."""

PF_R_SIM = [1.0, np.deg2rad(30.0)]
"""Odometry noise variances used to synthesize dead-reckoning input.

[velocity variance, yaw-rate variance].
"""

# Filter-internal noise model
PF_Q = 0.2
"""Range measurement noise variance assumed by the filter (m²)."""

PF_R = [2.0, np.deg2rad(40.0)]
"""Input noise variances used to spread particles during prediction.

Larger than PF_R_SIM: the filter runs with a noise model that does not
match the synthetic sensor.
"""

PF_REINIT_STD = [1.0, 1.0, np.deg2rad(10.0), 0.5]
"""Standard deviations for re-seeding particles around the last estimate.

Used only when every particle weight collapses to zero.
[x (m), y (m), yaw (rad), v (m/s)].
"""

LANDMARKS = np.array([
    [10.0, 0.0],
    [10.0, 10.0],
    [0.0, 15.0],
    [-5.0, 20.0],
])
"""Fixed landmark (RFID) positions in the world frame (m)."""

PF_INPUT_V = 1.0
"""Constant forward velocity command for the localization scenario (m/s)."""

PF_INPUT_YAW_RATE = 0.1
"""Constant yaw-rate command for the localization scenario (rad/s)."""


# ============================================================================
# Simulation Parameters
# ============================================================================

SIM_DT = 0.01
"""Default simulation time step (s)."""

SIM_SPEED = 2
"""Number of simulation steps per Simulator.update call."""


# ============================================================================
# Terminal Colors
# ============================================================================

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for summary lines."""

TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for warnings in summaries."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""
