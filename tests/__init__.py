"""
Test suite for robot_control.

This package contains unit tests organized by component:
- test_linalg.py: Tests for matrix helpers and the pseudo-inverse
- test_model.py: Tests for the cart-pendulum model and discretization
- test_lqr.py: Tests for the Riccati solver and LQR controller
- test_pid.py: Tests for the PID controller
- test_localizer.py: Tests for the particle filter
- test_simulation.py: Tests for the simulation driver and scenarios
- test_metrics.py: Tests for run statistics
- test_cli.py: Tests for the command-line interface
"""
