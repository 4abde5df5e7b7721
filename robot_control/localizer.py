"""Particle filter localization with range-only landmark observations.

This module implements a Sequential Importance Resampling (SIR) particle
filter for a vehicle driven by (velocity, yaw rate) commands:
- Observation synthesis: noisy ranges to landmarks within MAX_RANGE
- Dead reckoning: state propagated from noisy odometry alone
- Prediction: every particle advanced with its own noised input
- Reweighting: Gaussian likelihood of each range residual
- Estimate and covariance from the weighted particle cloud
- Systematic resampling when the effective sample size drops below NP/2

State vector (4 elements):
    - x, y: Position (meters) in world frame
    - yaw: Heading (radians)
    - v: Forward velocity (m/s)

Particles are stored as an (NP, 4) array with one particle per row, and
weights as an (NP,) array. Observations are (k, 3) arrays with rows
[range, landmark_x, landmark_y]. All population updates happen in place.

The noise model used inside the filter (PF_Q, PF_R) differs
from the one used to synthesize observations (PF_Q_SIM, PF_R_SIM).
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from .config import (
    LANDMARKS,
    PF_INPUT_V,
    PF_INPUT_YAW_RATE,
    PF_MAX_RANGE,
    PF_NUM_PARTICLES,
    PF_Q,
    PF_Q_SIM,
    PF_R,
    PF_R_SIM,
    PF_REINIT_STD,
    PF_RESAMPLE_RATIO,
)
from .errors import ConfigurationError, DegenerateWeightsError

MAX_RANGE = PF_MAX_RANGE
NP = PF_NUM_PARTICLES

# Observation columns
RANGE, LANDMARK_X, LANDMARK_Y = 0, 1, 2

_rng = np.random.default_rng()


def _resolve_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return _rng if rng is None else rng


@dataclass
class ParticleFilterSettings:
    """Particle count, sensing range and noise variances."""

    num_particles: int = PF_NUM_PARTICLES
    max_range: float = PF_MAX_RANGE
    q_sim: float = PF_Q_SIM  # range variance for synthetic observations (m²)
    r_sim: Tuple[float, float] = tuple(PF_R_SIM)  # odometry variances (v, yaw rate)
    q: float = PF_Q  # range variance assumed by the filter (m²)
    r: Tuple[float, float] = tuple(PF_R)  # particle input variances (v, yaw rate)
    resample_ratio: float = PF_RESAMPLE_RATIO
    reinit_std: Tuple[float, float, float, float] = tuple(PF_REINIT_STD)

    def __post_init__(self) -> None:
        """Validate the settings"""
        if int(self.num_particles) != self.num_particles or self.num_particles <= 0:
            raise ConfigurationError(
                f"num_particles must be a positive integer, got {self.num_particles}"
            )
        self.num_particles = int(self.num_particles)
        if not self.max_range > 0:
            raise ConfigurationError(f"max_range must be positive, got {self.max_range}")
        if not self.q > 0:
            raise ConfigurationError(f"Filter range variance q must be positive, got {self.q}")
        if self.q_sim < 0:
            raise ConfigurationError(f"q_sim must be non-negative, got {self.q_sim}")

        self.r_sim = tuple(float(v) for v in self.r_sim)
        self.r = tuple(float(v) for v in self.r)
        self.reinit_std = tuple(float(v) for v in self.reinit_std)
        if len(self.r_sim) != 2 or len(self.r) != 2:
            raise ConfigurationError("Input noise variances must have two entries (v, yaw rate)")
        if min(self.r_sim + self.r) < 0:
            raise ConfigurationError("Input noise variances must be non-negative")
        if len(self.reinit_std) != 4 or min(self.reinit_std) < 0:
            raise ConfigurationError("reinit_std must hold four non-negative entries")
        if not 0.0 < self.resample_ratio <= 1.0:
            raise ConfigurationError(
                f"resample_ratio must lie in (0, 1], got {self.resample_ratio}"
            )

    @property
    def resample_threshold(self) -> float:
        """N_eff below which the population is resampled."""
        return self.num_particles * self.resample_ratio


@dataclass
class LocalizationStep:
    """Outcome of one filter update.

    Attributes:
        covariance: 3×3 covariance of [x, y, yaw]
        n_eff: Effective sample size before any resampling
        resampled: True if systematic resampling ran
        reinitialized: True if degenerate weights forced a re-seed
    """

    covariance: np.ndarray
    n_eff: float
    resampled: bool
    reinitialized: bool


@dataclass(frozen=True)
class VehicleState:
    """Immutable copy of a localizer's states and particle population."""

    x_true: np.ndarray
    x_dr: np.ndarray
    x_est: np.ndarray
    p_est: np.ndarray
    particles: np.ndarray
    weights: np.ndarray


# ============================================================================
# Motion and Observation Models
# ============================================================================


def constant_input(v: float = PF_INPUT_V, yaw_rate: float = PF_INPUT_YAW_RATE) -> np.ndarray:
    """Control input [v, yaw_rate] for the circular localization scenario."""
    return np.array([v, yaw_rate], dtype=np.float64)


def motion_model(x: np.ndarray, u: np.ndarray, dt: float) -> np.ndarray:
    """Propagate one or many states through the unicycle model.

        x   += v_cmd * cos(yaw) * dt
        y   += v_cmd * sin(yaw) * dt
        yaw += yaw_rate * dt
        v    = v_cmd

    The heading used for the position update is the one before this step.

    Args:
        x: State (4,) or stacked states (N, 4)
        u: Input (2,) shared by all states, or per-state inputs (N, 2)
        dt: Time step (seconds)

    Returns:
        New array with the propagated state(s), same shape as x
    """
    x = np.asarray(x, dtype=np.float64)
    u = np.asarray(u, dtype=np.float64)
    yaw = x[..., 2]
    v_cmd = u[..., 0]

    x_next = x.copy()
    x_next[..., 0] = x[..., 0] + v_cmd * np.cos(yaw) * dt
    x_next[..., 1] = x[..., 1] + v_cmd * np.sin(yaw) * dt
    x_next[..., 2] = yaw + u[..., 1] * dt
    x_next[..., 3] = v_cmd
    return x_next


def landmark_ranges(x: np.ndarray, landmarks: np.ndarray) -> np.ndarray:
    """True distance from the position of x to each landmark, shape (L,)."""
    landmarks = np.asarray(landmarks, dtype=np.float64)
    return np.hypot(x[0] - landmarks[:, 0], x[1] - landmarks[:, 1])


def observe(
    x_true: np.ndarray,
    landmarks: np.ndarray,
    max_range: float = MAX_RANGE,
    q_sim: float = PF_Q_SIM,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Synthesize noisy range observations of landmarks within max_range.

    A landmark at exactly max_range is observed.

    Returns:
        (k, 3) array with rows [noisy_range, landmark_x, landmark_y]
    """
    rng = _resolve_rng(rng)
    landmarks = np.asarray(landmarks, dtype=np.float64)
    distances = landmark_ranges(x_true, landmarks)
    visible = distances <= max_range

    noisy = distances[visible] + rng.standard_normal(int(visible.sum())) * math.sqrt(q_sim)
    return np.column_stack([noisy, landmarks[visible, 0], landmarks[visible, 1]])


def noisy_odometry(
    u: np.ndarray, r_sim: Sequence[float] = PF_R_SIM, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """Degrade a control input with independent Gaussian noise per channel."""
    rng = _resolve_rng(rng)
    std = np.sqrt(np.asarray(r_sim, dtype=np.float64))
    return np.asarray(u, dtype=np.float64) + rng.standard_normal(2) * std


def pf_step(
    x_true: np.ndarray,
    x_dr: np.ndarray,
    u: np.ndarray,
    landmarks: np.ndarray,
    dt: float,
    rng: Optional[np.random.Generator] = None,
    settings: Optional[ParticleFilterSettings] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Advance ground truth, synthesize observations and dead-reckon.

    x_true is propagated with the exact input u; x_dr is propagated with the
    noised odometry input. Both are updated in place.

    Args:
        x_true: Ground-truth state (4,), mutated
        x_dr: Dead-reckoning state (4,), mutated
        u: Control input [v, yaw_rate]
        landmarks: (L, 2) landmark positions
        dt: Time step (seconds)
        rng: Random generator. Default: module-wide generator
        settings: Filter settings. Default: ParticleFilterSettings()

    Returns:
        Tuple of (observations (k, 3), noised input (2,))
    """
    rng = _resolve_rng(rng)
    settings = settings if settings is not None else ParticleFilterSettings()

    x_true[:] = motion_model(x_true, u, dt)
    z = observe(x_true, landmarks, settings.max_range, settings.q_sim, rng)

    ud = noisy_odometry(u, settings.r_sim, rng)
    x_dr[:] = motion_model(x_dr, ud, dt)

    return z, ud


# ============================================================================
# Filter Update
# ============================================================================


def gauss_likelihood(x: np.ndarray, sigma: float) -> np.ndarray:
    """Zero-mean Gaussian density N(x; 0, sigma)."""
    return norm.pdf(x, loc=0.0, scale=sigma)


def predict_particles(
    particles: np.ndarray,
    u: np.ndarray,
    dt: float,
    r: Sequence[float] = PF_R,
    rng: Optional[np.random.Generator] = None,
) -> None:
    """Advance each particle with an independently noised copy of u (in place)."""
    rng = _resolve_rng(rng)
    std = np.sqrt(np.asarray(r, dtype=np.float64))
    noise = rng.standard_normal((particles.shape[0], 2)) * std
    particles[:] = motion_model(particles, np.asarray(u, dtype=np.float64) + noise, dt)


def update_weights(
    particles: np.ndarray, weights: np.ndarray, observations: np.ndarray, q: float = PF_Q
) -> None:
    """Multiply each weight by the likelihood of every range observation.

    For particle i and observation j the residual is the predicted range from
    the particle to landmark j minus the observed range. Likelihoods of all
    observations in one tick are multiplied together. Weights are updated in
    place and are not normalized here.
    """
    observations = np.asarray(observations, dtype=np.float64).reshape(-1, 3)
    if observations.shape[0] == 0:
        return

    dx = particles[:, 0, np.newaxis] - observations[np.newaxis, :, LANDMARK_X]
    dy = particles[:, 1, np.newaxis] - observations[np.newaxis, :, LANDMARK_Y]
    residual = np.hypot(dx, dy) - observations[np.newaxis, :, RANGE]

    weights *= np.prod(gauss_likelihood(residual, math.sqrt(q)), axis=1)


def normalize_weights(weights: np.ndarray) -> None:
    """Scale weights in place so they sum to one.

    Raises:
        DegenerateWeightsError: If the weights sum to zero or a non-finite
            value. Weights are left untouched.
    """
    total = float(np.sum(weights))
    if not math.isfinite(total) or total <= 0.0:
        raise DegenerateWeightsError(f"Particle weights are degenerate (sum = {total})")
    weights /= total


def estimate_state(particles: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted mean of the particle states, shape (4,)."""
    return weights @ particles


def calc_covariance(x_est: np.ndarray, particles: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted covariance of [x, y, yaw] with the 1/(1 - Σw²) correction.

    When all weight sits on a single particle the correction is undefined and
    the uncorrected covariance is returned.
    """
    dx = particles[:, :3] - x_est[:3]
    cov = (weights[:, np.newaxis] * dx).T @ dx
    denominator = 1.0 - float(np.sum(weights**2))
    if denominator > 0.0:
        cov *= 1.0 / denominator
    return cov


def effective_sample_size(weights: np.ndarray) -> float:
    """N_eff = 1 / Σw². Equals NP for uniform weights and 1 for a single particle."""
    return 1.0 / float(np.sum(weights**2))


def systematic_resample_indices(
    weights: np.ndarray, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """Pick particle indices by stratified/systematic resampling.

    NP evenly spaced points i/NP are each jittered by U[0, 1/NP) and matched
    against the cumulative weight sum with a single forward scan. The scan
    index never passes NP-1, even if rounding leaves the final cumulative
    weight below the last point.

    Returns:
        Integer array of NP indices, non-decreasing
    """
    rng = _resolve_rng(rng)
    n = weights.shape[0]
    w_cum = np.cumsum(weights)
    points = np.arange(n) / n + rng.uniform(0.0, 1.0 / n, size=n)

    indices = np.empty(n, dtype=np.intp)
    ind = 0
    for ip in range(n):
        while points[ip] > w_cum[ind] and ind < n - 1:
            ind += 1
        indices[ip] = ind
    return indices


def resample(
    particles: np.ndarray, weights: np.ndarray, rng: Optional[np.random.Generator] = None
) -> None:
    """Replace the population by a systematic resample and reset weights to 1/NP (in place)."""
    indices = systematic_resample_indices(weights, rng)
    particles[:] = particles[indices]
    weights[:] = 1.0 / weights.shape[0]


def reinitialize_particles(
    particles: np.ndarray,
    weights: np.ndarray,
    center: np.ndarray,
    std: Sequence[float] = PF_REINIT_STD,
    rng: Optional[np.random.Generator] = None,
) -> None:
    """Scatter particles around center with Gaussian spread and uniform weights (in place)."""
    rng = _resolve_rng(rng)
    spread = rng.standard_normal(particles.shape) * np.asarray(std, dtype=np.float64)
    particles[:] = np.asarray(center, dtype=np.float64) + spread
    weights[:] = 1.0 / weights.shape[0]


def localize_particles(
    x_est: np.ndarray,
    particles: np.ndarray,
    weights: np.ndarray,
    observations: np.ndarray,
    u: np.ndarray,
    dt: float,
    rng: Optional[np.random.Generator] = None,
    settings: Optional[ParticleFilterSettings] = None,
) -> LocalizationStep:
    """Run one full filter update and report what happened.

    Predicts, reweights and normalizes the population, updates x_est in place
    with the weighted mean, computes the covariance and resamples when
    N_eff < NP * resample_ratio. If all weights collapse to zero the
    population is re-seeded around the previous estimate instead of
    propagating NaN.

    Args:
        x_est: State estimate (4,), mutated
        particles: (NP, 4) particle states, mutated
        weights: (NP,) particle weights, mutated
        observations: (k, 3) range observations
        u: Noised odometry input [v, yaw_rate]
        dt: Time step (seconds)
        rng: Random generator. Default: module-wide generator
        settings: Filter settings. Default: ParticleFilterSettings()

    Returns:
        LocalizationStep with covariance and diagnostics
    """
    rng = _resolve_rng(rng)
    settings = settings if settings is not None else ParticleFilterSettings()
    n = particles.shape[0]

    predict_particles(particles, u, dt, settings.r, rng)
    update_weights(particles, weights, observations, settings.q)

    reinitialized = False
    try:
        normalize_weights(weights)
    except DegenerateWeightsError as e:
        logging.warning(f"{e}; re-initializing {n} particles around last estimate")
        reinitialize_particles(particles, weights, x_est, settings.reinit_std, rng)
        reinitialized = True

    x_est[:] = estimate_state(particles, weights)
    covariance = calc_covariance(x_est, particles, weights)

    n_eff = effective_sample_size(weights)
    resampled = False
    if n_eff < n * settings.resample_ratio:
        logging.debug(f"Resampling: N_eff {n_eff:.1f} < {n * settings.resample_ratio:.1f}")
        resample(particles, weights, rng)
        resampled = True

    return LocalizationStep(
        covariance=covariance, n_eff=n_eff, resampled=resampled, reinitialized=reinitialized
    )


def pf_localize(
    x_est: np.ndarray,
    particles: np.ndarray,
    weights: np.ndarray,
    observations: np.ndarray,
    u: np.ndarray,
    dt: float,
    rng: Optional[np.random.Generator] = None,
    settings: Optional[ParticleFilterSettings] = None,
) -> np.ndarray:
    """One filter update (see localize_particles), returning only the 3×3 covariance."""
    return localize_particles(x_est, particles, weights, observations, u, dt, rng, settings).covariance


# ============================================================================
# Stateful Localizer
# ============================================================================


class ParticleFilterLocalizer:
    """Vehicle localization using a particle filter over range observations.

    Owns the ground-truth, dead-reckoning and estimated states together with
    the particle population, and advances all of them on each step().

    Attributes:
        landmarks: (L, 2) landmark positions
        settings: Particle count, range and noise variances
        x_true: Ground-truth state (4,)
        x_dr: Dead-reckoning state (4,)
        x_est: Filter estimate (4,)
        p_est: Covariance of [x, y, yaw] (3, 3)
        particles: (NP, 4) particle states
        weights: (NP,) particle weights
    """

    def __init__(
        self,
        landmarks: Optional[np.ndarray] = None,
        settings: Optional[ParticleFilterSettings] = None,
        rng: Optional[np.random.Generator] = None,
        initial_state: Optional[np.ndarray] = None,
    ) -> None:
        """Initialize the localizer with every particle at the initial state.

        Args:
            landmarks: (L, 2) landmark positions. Default: config.LANDMARKS
            settings: Filter settings. Default: ParticleFilterSettings()
            rng: Random generator. Default: a fresh unseeded generator
            initial_state: Starting state (4,). Default: zeros

        Raises:
            ConfigurationError: If landmarks or the initial state are malformed
        """
        landmarks = LANDMARKS if landmarks is None else landmarks
        self.landmarks = np.array(landmarks, dtype=np.float64)
        if self.landmarks.ndim != 2 or self.landmarks.shape[1] != 2:
            raise ConfigurationError(f"Landmarks must have shape (L, 2), got {self.landmarks.shape}")
        self.landmarks.setflags(write=False)

        self.settings = settings if settings is not None else ParticleFilterSettings()
        self.rng = rng if rng is not None else np.random.default_rng()

        if initial_state is None:
            initial_state = np.zeros(4)
        self.initial_state = np.array(initial_state, dtype=np.float64)
        if self.initial_state.shape != (4,):
            raise ConfigurationError(f"Initial state must have shape (4,), got {self.initial_state.shape}")

        self.reset()

    def reset(self) -> None:
        """Return every state and the particle population to the initial state."""
        n = self.settings.num_particles
        self.x_true = self.initial_state.copy()
        self.x_dr = self.initial_state.copy()
        self.x_est = self.initial_state.copy()
        self.p_est = np.zeros((3, 3))
        self.particles = np.tile(self.initial_state, (n, 1))
        self.weights = np.full(n, 1.0 / n)

        # Diagnostics
        self.steps = 0
        self.resample_count = 0
        self.reinit_count = 0
        self.last_n_eff = float(n)
        self.last_observations = np.empty((0, 3))

    def step(self, u: np.ndarray, dt: float) -> np.ndarray:
        """Advance truth, dead reckoning and the filter by one tick.

        Args:
            u: Control input [v, yaw_rate]
            dt: Time step (seconds), must be positive

        Returns:
            3×3 covariance estimate
        """
        if not dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {dt}")

        z, ud = pf_step(self.x_true, self.x_dr, u, self.landmarks, dt, self.rng, self.settings)
        result = localize_particles(
            self.x_est, self.particles, self.weights, z, ud, dt, self.rng, self.settings
        )

        self.p_est = result.covariance
        self.last_observations = z
        self.last_n_eff = result.n_eff
        self.steps += 1
        if result.resampled:
            self.resample_count += 1
        if result.reinitialized:
            self.reinit_count += 1
        return self.p_est

    def snapshot(self) -> VehicleState:
        """Copy the current states and population into a VehicleState."""
        return VehicleState(
            x_true=self.x_true.copy(),
            x_dr=self.x_dr.copy(),
            x_est=self.x_est.copy(),
            p_est=self.p_est.copy(),
            particles=self.particles.copy(),
            weights=self.weights.copy(),
        )

    def restore(self, state: VehicleState) -> None:
        """Overwrite states and population from a snapshot.

        Raises:
            TypeError: If state is not a VehicleState
            ConfigurationError: If the particle count differs from this filter's
        """
        if not isinstance(state, VehicleState):
            raise TypeError(f"Cannot restore a particle filter from {type(state).__name__}")
        if state.particles.shape != self.particles.shape:
            raise ConfigurationError(
                f"Snapshot holds {state.particles.shape[0]} particles, "
                f"filter expects {self.particles.shape[0]}"
            )
        self.x_true = state.x_true.copy()
        self.x_dr = state.x_dr.copy()
        self.x_est = state.x_est.copy()
        self.p_est = state.p_est.copy()
        self.particles = state.particles.copy()
        self.weights = state.weights.copy()

    def position_error(self) -> float:
        """Euclidean distance between estimated and true position (m)."""
        return float(np.hypot(self.x_est[0] - self.x_true[0], self.x_est[1] - self.x_true[1]))

    def get_state(self) -> Dict[str, float]:
        """Get current state estimate.

        Returns:
            Dictionary containing x, y, yaw and v of the estimate
        """
        x, y, yaw, v = self.x_est
        return {"x": float(x), "y": float(y), "yaw": float(yaw), "v": float(v)}

    def get_diagnostics(self) -> Dict[str, float]:
        """Get filter diagnostic information for tuning and monitoring.

        Returns:
            Dictionary containing:
                - P_trace: Trace of the covariance estimate
                - n_eff: Effective sample size of the last update
                - observations: Number of landmarks observed last tick
                - resample_count: Total resampling events
                - reinit_count: Total degenerate-weight re-initializations
                - position_error: Estimate vs ground truth distance (m)
                - dr_error: Dead reckoning vs ground truth distance (m)
        """
        return {
            "P_trace": float(np.trace(self.p_est)),
            "n_eff": float(self.last_n_eff),
            "observations": int(self.last_observations.shape[0]),
            "resample_count": self.resample_count,
            "reinit_count": self.reinit_count,
            "position_error": self.position_error(),
            "dr_error": float(np.hypot(self.x_dr[0] - self.x_true[0], self.x_dr[1] - self.x_true[1])),
        }
