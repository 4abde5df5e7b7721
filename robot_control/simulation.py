"""
Headless simulation driver for the pendulum and localization scenarios.

A simulation owns its state vectors and advances them one tick at a time.
Two kinds exist:
- PendulumSimulation: cart-pendulum balanced by LQR or PID
- VehicleSimulation: vehicle localized by the particle filter

The Simulator drives any number of simulations in lock step, sim_speed
ticks per update, and can copy one simulation's state into all others of
the same kind.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Union

import numpy as np

from .config import (
    PENDULUM_INITIAL_ANGLE_RANGE,
    PENDULUM_PID_KD,
    PENDULUM_PID_KI,
    PENDULUM_PID_KP,
    SIM_DT,
    SIM_SPEED,
)
from .errors import ConfigurationError, InverseFailedError
from .localizer import ParticleFilterLocalizer, ParticleFilterSettings, VehicleState, constant_input
from .lqr import LQRController, LQRSettings
from .model import NX, PendulumModel, discretize
from .pid import PIDController


class SimKind(Enum):
    """Simulation kinds."""

    INVERTED_PENDULUM = "inverted_pendulum"
    PARTICLE_FILTER = "particle_filter"


class ControllerKind(Enum):
    """Balancing strategy for the pendulum."""

    LQR = "lqr"
    PID = "pid"


@dataclass(frozen=True)
class PendulumState:
    """Immutable copy of a pendulum simulation's state."""

    x: np.ndarray  # [x, x_dot, theta, theta_dot]
    u: float  # last applied force (N)
    time: float  # elapsed simulated time (s)


class PendulumSimulation:
    """Cart-pendulum balanced by a state-feedback or PID controller.

    Each tick discretizes the plant at dt, computes a control force and
    advances x[k+1] = A x[k] + B u[k]. If the control computation fails
    numerically, the previous force is applied again.

    Attributes:
        model: Plant parameters
        controller_kind: LQR or PID
        lqr: LQR controller (used when controller_kind is LQR)
        pid: PID controller on -theta (used when controller_kind is PID)
        x: Current state (4,)
        u: Last applied force
        time: Elapsed simulated time (s)
    """

    kind = SimKind.INVERTED_PENDULUM

    def __init__(
        self,
        model: Optional[PendulumModel] = None,
        controller_kind: Union[ControllerKind, str] = ControllerKind.LQR,
        lqr_settings: Optional[LQRSettings] = None,
        pid: Optional[PIDController] = None,
        initial_state: Optional[np.ndarray] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """Initialize the simulation.

        Args:
            model: Plant parameters. Default: PendulumModel()
            controller_kind: ControllerKind or its value ("lqr", "pid")
            lqr_settings: LQR settings. Default: LQRSettings()
            pid: PID controller. Default: pendulum gains from config
            initial_state: Fixed starting state. Default: [0, 0, theta0, 0]
                with theta0 drawn from [-0.4, 0.4) on every reset
            rng: Random generator for the initial angle
        """
        self.model = model if model is not None else PendulumModel()
        try:
            self.controller_kind = ControllerKind(controller_kind)
        except ValueError as e:
            raise ConfigurationError(f"Unknown controller kind: {controller_kind!r}") from e

        self.lqr = LQRController(self.model, lqr_settings)
        self.pid = pid if pid is not None else PIDController(
            PENDULUM_PID_KP, PENDULUM_PID_KI, PENDULUM_PID_KD
        )
        self.rng = rng if rng is not None else np.random.default_rng()

        self.initial_state = None
        if initial_state is not None:
            self.initial_state = np.array(initial_state, dtype=np.float64)
            if self.initial_state.shape != (NX,):
                raise ConfigurationError(
                    f"Initial state must have shape ({NX},), got {self.initial_state.shape}"
                )

        self.reset()

    def reset(self) -> None:
        """Return to the initial state and clear controller memory."""
        if self.initial_state is not None:
            self.x = self.initial_state.copy()
        else:
            theta0 = self.rng.uniform(-PENDULUM_INITIAL_ANGLE_RANGE, PENDULUM_INITIAL_ANGLE_RANGE)
            self.x = np.array([0.0, 0.0, theta0, 0.0])
        self.u = 0.0
        self.time = 0.0
        self.lqr.reset()
        self.pid.reset_state()

    def compute_control(self, dt: float) -> float:
        """Control force for the current state."""
        if self.controller_kind is ControllerKind.LQR:
            return self.lqr.control(self.x, dt)
        return self.pid.control(-self.x[2], dt)

    def step(self, dt: float) -> None:
        """Advance one tick of length dt."""
        A, B = discretize(self.model, dt)
        try:
            self.u = self.compute_control(dt)
        except InverseFailedError as e:
            logging.warning(f"Control computation failed ({e}); holding u = {self.u:.3f}")

        self.x = self.model.step(self.x, self.u, A, B)
        self.time += dt

    def snapshot(self) -> PendulumState:
        return PendulumState(x=self.x.copy(), u=self.u, time=self.time)

    def restore(self, state: PendulumState) -> None:
        """Overwrite the simulation state from a snapshot.

        Raises:
            TypeError: If state is not a PendulumState
        """
        if not isinstance(state, PendulumState):
            raise TypeError(f"Cannot restore a pendulum simulation from {type(state).__name__}")
        self.x = state.x.copy()
        self.u = state.u
        self.time = state.time

    def get_state(self):
        x, x_dot, theta, theta_dot = self.x
        return {
            "x": float(x),
            "x_dot": float(x_dot),
            "theta": float(theta),
            "theta_dot": float(theta_dot),
            "u": float(self.u),
            "time": self.time,
        }


class VehicleSimulation:
    """Vehicle driven by a constant input and tracked by a particle filter.

    Attributes:
        localizer: Particle filter with ground truth and dead reckoning
        u: Control input [v, yaw_rate] applied every tick
        time: Elapsed simulated time (s)
    """

    kind = SimKind.PARTICLE_FILTER

    def __init__(
        self,
        landmarks: Optional[np.ndarray] = None,
        settings: Optional[ParticleFilterSettings] = None,
        u: Optional[np.ndarray] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.localizer = ParticleFilterLocalizer(landmarks, settings, rng)
        self.u = constant_input() if u is None else np.array(u, dtype=np.float64)
        if self.u.shape != (2,):
            raise ConfigurationError(f"Vehicle input must be [v, yaw_rate], got shape {self.u.shape}")
        self.time = 0.0

    def reset(self) -> None:
        self.localizer.reset()
        self.time = 0.0

    def step(self, dt: float) -> None:
        """Advance truth, dead reckoning and the filter by one tick."""
        self.localizer.step(self.u, dt)
        self.time += dt

    def snapshot(self) -> VehicleState:
        return self.localizer.snapshot()

    def restore(self, state: VehicleState) -> None:
        """Overwrite the localizer state from a snapshot.

        Raises:
            TypeError: If state is not a VehicleState
        """
        self.localizer.restore(state)

    def get_state(self):
        state = self.localizer.get_state()
        state["time"] = self.time
        return state


Simulation = Union[PendulumSimulation, VehicleSimulation]


class Simulator:
    """Lock-step driver for a set of simulations.

    Attributes:
        simulations: Simulations advanced on every update
        sim_speed: Ticks per update call
        dt: Default tick length (s)
    """

    def __init__(
        self,
        simulations: Iterable[Simulation],
        sim_speed: int = SIM_SPEED,
        dt: float = SIM_DT,
    ):
        """Initialize the driver.

        Raises:
            ConfigurationError: If there are no simulations, sim_speed is not
                a positive integer, or dt is not positive
        """
        self.simulations: List[Simulation] = list(simulations)
        if not self.simulations:
            raise ConfigurationError("Simulator needs at least one simulation")
        if int(sim_speed) != sim_speed or sim_speed <= 0:
            raise ConfigurationError(f"sim_speed must be a positive integer, got {sim_speed}")
        if not dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {dt}")

        self.sim_speed = int(sim_speed)
        self.dt = dt
        self.updates = 0

    def update(self, dt: Optional[float] = None) -> None:
        """Advance every simulation sim_speed ticks.

        Args:
            dt: Tick length (s). Default: the driver's dt
        """
        dt = self.dt if dt is None else dt
        if not dt > 0:
            raise ConfigurationError(f"Time step must be positive, got {dt}")

        for _ in range(self.sim_speed):
            for sim in self.simulations:
                sim.step(dt)
        self.updates += 1

    def reset(self) -> None:
        for sim in self.simulations:
            sim.reset()
        self.updates = 0

    def match_states(self, source: Union[int, Simulation]) -> int:
        """Copy one simulation's state into every other simulation of its kind.

        Args:
            source: The source simulation or its index in simulations

        Returns:
            Number of simulations that were overwritten
        """
        if isinstance(source, int):
            source = self.simulations[source]
        elif source not in self.simulations:
            raise ValueError("Source simulation is not driven by this simulator")

        state = source.snapshot()
        matched = 0
        for sim in self.simulations:
            if sim is source or sim.kind is not source.kind:
                continue
            sim.restore(state)
            matched += 1

        logging.debug(f"Matched {matched} {source.kind.value} simulation(s) to source state")
        return matched
