# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# This library is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# along with this library.  If not, see <http://www.gnu.org/licenses/>.
#

import abc
import logging
import os
import time

from .datacenter import BANDWIDTH, default_vm_types
from .errors import SchedulingError
from .model import ExtendedFinishMode
from .schedule import Schedule


class Scheduler(metaclass=abc.ABCMeta):
  """
  Base class for all scheduling algorithms.

  Defines scheduler public interface and provides (very few) useful methods for
  actual schedulers:

    *self._log* - Logger object (see logging module documentation)

    *self._config* - merged configuration dictionary

  Recognized configuration options:

    *alpha* - deadline laxity multiplier (> 0)

    *beta* - budget/energy trade-off fraction (0 <= beta <= 1)

    *bandwidth* - network bandwidth between distinct VMs, Gbit/s

    *extended_finish* - :class:`esdwb.model.ExtendedFinishMode` (or its name)
  """
  _DEFAULT_CONFIG = {
    "alpha": 1.3,
    "beta": 0.6,
    "bandwidth": BANDWIDTH,
    "extended_finish": ExtendedFinishMode.STRICT
  }

  def __init__(self, workflow, vm_types=None, config=None):
    """
    Initialize scheduler instance.

    Args:
      workflow: a :class:`esdwb.workflow.Workflow` object
      vm_types: VM catalog (list of :class:`esdwb.datacenter.VmType`), default catalog if None
      config: dict overriding the default configuration
    """
    self._workflow = workflow
    self._vm_types = list(vm_types) if vm_types is not None else default_vm_types()
    self._log = logging.getLogger(type(self).__name__)

    self._config = dict(self._DEFAULT_CONFIG)
    # mode switches can be configured via environment variables
    if "ESDWB_EXTENDED_FINISH" in os.environ:
      self._config["extended_finish"] = os.environ["ESDWB_EXTENDED_FINISH"]
    if config:
      assert isinstance(config, dict)
      self._config.update(config)
    if isinstance(self._config["extended_finish"], str):
      self._config["extended_finish"] = ExtendedFinishMode[self._config["extended_finish"].upper()]

    if not self.alpha > 0:
      raise ValueError("alpha must be positive, got {}".format(self.alpha))
    if not 0 <= self.beta <= 1:
      raise ValueError("beta must be within [0, 1], got {}".format(self.beta))
    if not self.bandwidth > 0:
      raise ValueError("bandwidth must be positive, got {}".format(self.bandwidth))

    self.__scheduler_time = -1.
    self.__expected_makespan = None
    self.__schedule = None

  @property
  def alpha(self):
    return float(self._config["alpha"])

  @property
  def beta(self):
    return float(self._config["beta"])

  @property
  def bandwidth(self):
    return float(self._config["bandwidth"])

  @property
  def extended_finish_mode(self):
    return self._config["extended_finish"]

  @property
  def workflow(self):
    return self._workflow

  @property
  def vm_types(self):
    return list(self._vm_types)

  def run(self):
    """
    Compute the schedule and check its completeness.

    Returns:
      :class:`esdwb.schedule.Schedule`

    Note:
      Not intended to be overriden in the concrete algorithms.
    """
    start_time = time.time()
    schedule = self.get_schedule()
    self.__scheduler_time = time.time() - start_time
    self._log.debug("Scheduling time: %f", self.__scheduler_time)
    if isinstance(schedule, tuple):
      if len(schedule) != 2 or not isinstance(schedule[0], Schedule) or not isinstance(schedule[1], float):
        raise SchedulingError("'get_schedule' returned tuple should have format (<schedule>, <expected_makespan>)")
      schedule, self.__expected_makespan = schedule
      self._log.debug("Expected makespan: %f", self.__expected_makespan)
    if not isinstance(schedule, Schedule):
      raise SchedulingError("'get_schedule' must return a Schedule or a tuple")

    unscheduled = [t.id for t in self._workflow if not schedule.is_assigned(t)]
    if unscheduled:
      raise SchedulingError("some tasks are left unscheduled: {}".format(unscheduled))
    self.__schedule = schedule
    return schedule

  @abc.abstractmethod
  def get_schedule(self):
    """
    Abstract method that need to be overriden in scheduler implementation.

    Returns:

      Expected to return a :class:`esdwb.schedule.Schedule`.
      Optionally, can also return a predicted makespan. Then return type is a tuple (schedule, predicted_makespan).
    """
    raise NotImplementedError()

  @property
  def scheduler_time(self):
    """
    Wall clock time spent scheduling.
    """
    return self.__scheduler_time

  @property
  def expected_makespan(self):
    """
    Algorithm's makespan prediction. Can return None if algorithms didn't/cannot provide it.
    """
    return self.__expected_makespan

  @property
  def schedule(self):
    """
    Schedule computed by the last :meth:`run` (None before that).
    """
    return self.__schedule
