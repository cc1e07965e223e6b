"""
The Supervisor package.
Manages the lifecycle of the worker processes in the pool.

This package contains the central PoolSupervisor class and its helper modules,
which together handle spawning, retiring, replacing and signalling workers.
"""
from .supervisor import PoolSupervisor
from .worker import WorkerHandle, WorkerState
from .control import ControlSurface

__all__ = ['PoolSupervisor', 'WorkerHandle', 'WorkerState', 'ControlSurface']
