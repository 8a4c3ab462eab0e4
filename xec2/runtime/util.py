# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Helpers for code running inside a Pulumi program"""

from typing import Callable, TypeVar, Optional

import os
import time
import debugpy # type: ignore[import]

import pulumi
from pulumi import Output

from ..constants import XEC2_DEBUGGER_ENV_VAR

def enable_debugging(host: str='localhost', port: int=5678, max_wait_secs: int=30, force: bool=False) -> None:
  """If XEC2_DEBUGGER is set (or force is True), waits for a debugger such as vscode to attach"""
  if force or os.environ.get(XEC2_DEBUGGER_ENV_VAR, '') != '':
    pulumi.log.info("Pulumi debugger activated; waiting for debugger to attach")
    debugpy.listen((host, port))
    max_wait_s = max_wait_secs
    while max_wait_s >= 0:
      if debugpy.is_client_connected():
        pulumi.log.info("Pulumi debugger attached")
        breakpoint()  # pylint: disable=forgotten-debug-statement
        break
      time.sleep(1)
      max_wait_s -= 1
    else:
      pulumi.log.info("Pulumi debugger did not attach; resuming")

T = TypeVar('T')
def future_func(func: Callable[..., T]) -> Callable[..., Output[T]]:
  """A decorator for a function that takes resolved
     future inputs as arguments, and returns a resolved future result.

     The decorated function will take unresolved arguments and return
     an unresolved result

  Args:
      func (Callable[..., T]): A synchronous function

  Returns:
      Callable[..., Output[T]]: A function that accepts promises and returns a promise
  """
  def wrapper(*future_args):
    result = Output.all(*future_args).apply(lambda args: func(*args))
    return result
  return wrapper

def default_val(x: Optional[T], default: T) -> T:
  return default if x is None else x
