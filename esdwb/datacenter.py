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

"""
Resource catalog: VM archetypes, launched instances and the per-run instance pool.

Units used across the package:

* speed - MIPS (million instructions per second)
* frequency - GHz
* voltage - V
* cost - USD per second
* bandwidth - Gbit per second
"""

import numpy

# network bandwidth between two distinct VMs, Gbit/s
BANDWIDTH = 1.0

# MIPS per GHz of clock frequency
SPEED_PER_GHZ = 1.0e3

# dynamic power coefficient: P = K * V^2 * f
POWER_COEFFICIENT = 1.0


class VmType(object):
  """
  VM archetype with a table of discrete operating points.

  Operating points are stored as three parallel arrays (voltage, frequency, speed),
  index *i* of each array describing the same point. Tables are listed from the
  highest performance point to the lowest one.
  """
  def __init__(self, id, cost_per_second, voltages, frequencies, speeds=None):
    if speeds is None:
      speeds = [f * SPEED_PER_GHZ for f in frequencies]
    if not (len(voltages) == len(frequencies) == len(speeds)):
      raise ValueError("operating point tables of VM type {} have different lengths ({}, {}, {})"
                       .format(id, len(voltages), len(frequencies), len(speeds)))
    if not len(speeds):
      raise ValueError("VM type {} has no operating points".format(id))
    self.id = id
    self.cost_per_second = float(cost_per_second)
    self.voltages = self._frozen(voltages)
    self.frequencies = self._frozen(frequencies)
    self.speeds = self._frozen(speeds)

  @classmethod
  def from_hourly_cost(cls, id, cost_per_hour, voltages, frequencies):
    """
    Build a VM type from a provider price list (USD per hour).
    """
    return cls(id, cost_per_hour / 3600., voltages, frequencies)

  @staticmethod
  def _frozen(values):
    array = numpy.array(values, dtype=float)
    array.flags.writeable = False
    return array

  @property
  def point_count(self):
    return len(self.speeds)

  @property
  def fastest_point(self):
    """
    Index of the fastest operating point (first one on ties).
    """
    return int(numpy.argmax(self.speeds))

  @property
  def max_speed(self):
    return float(self.speeds[self.fastest_point])

  @property
  def cost_to_speed_ratio(self):
    """
    Cost per second divided by the top processing speed.
    """
    return self.cost_per_second / self.max_speed

  def __repr__(self):
    return "VmType(id={}, cost_per_second={:.3e}, max_speed={})".format(self.id, self.cost_per_second, self.max_speed)


class Vm(object):
  """
  Launched instance of a VM type.

  Instance runs at one operating point at a time, initially the fastest.
  Equality is identity: two instances are never the same VM even with equal ids
  from different pools.
  """
  def __init__(self, id, vm_type):
    self.id = id
    self.type = vm_type
    self.__point = vm_type.fastest_point

  @property
  def point(self):
    return self.__point

  def set_point(self, index):
    """
    Switch to another operating point of the VM type.

    Note:
      every timing query reads the current point, so schedules evaluated before
      the switch must be invalidated (see :meth:`esdwb.schedule.Schedule.invalidate`).
    """
    if not 0 <= index < self.type.point_count:
      raise IndexError("VM type {} has no operating point {}".format(self.type.id, index))
    self.__point = index

  @property
  def voltage(self):
    return float(self.type.voltages[self.__point])

  @property
  def frequency(self):
    return float(self.type.frequencies[self.__point])

  @property
  def speed(self):
    return float(self.type.speeds[self.__point])

  def power_consumption(self):
    return POWER_COEFFICIENT * self.voltage ** 2 * self.frequency

  def __repr__(self):
    return "Vm(id={}, type={}, voltage={}, frequency={}, speed={})".format(
      self.id, self.type.id, self.voltage, self.frequency, self.speed)


class DataCenter(object):
  """
  VM catalog plus the pool of instances launched during a single run.
  """
  def __init__(self, vm_types=None):
    self.__vm_types = list(vm_types) if vm_types is not None else default_vm_types()
    if not self.__vm_types:
      raise ValueError("data center needs at least one VM type")
    self.__vms = []

  @property
  def vm_types(self):
    return list(self.__vm_types)

  @property
  def vms(self):
    return list(self.__vms)

  # python max/min return the first extreme element, so ties go to catalog order
  def find_fastest_type(self):
    return max(self.__vm_types, key=lambda tau: tau.max_speed)

  def find_cheapest_type(self):
    return min(self.__vm_types, key=lambda tau: tau.cost_to_speed_ratio)

  def find_costliest_type(self):
    return max(self.__vm_types, key=lambda tau: tau.cost_to_speed_ratio)

  def launch_new_vm(self, vm_type):
    vm = Vm(len(self.__vms), vm_type)
    self.__vms.append(vm)
    return vm

  def find_idle_vm(self, schedule, task, vm_type, model):
    """
    Find an already launched VM of the given type that can take the task without delaying it.

    VM qualifies if it has nothing assigned yet, or if its last task finishes strictly before
    the moment the task could start on it (data dependencies only).

    Args:
      schedule: :class:`esdwb.schedule.Schedule` under construction
      task: candidate task (not yet assigned)
      vm_type: required VM type
      model: :class:`esdwb.model.TimingModel` bound to the schedule

    Returns:
      first suitable VM in launch order or None
    """
    for vm in self.__vms:
      if vm.type is not vm_type:
        continue
      assigned = schedule.tasks_on(vm)
      if not assigned:
        return vm
      last_finish = max(model.actual_finish_time(t) for t in assigned)
      if last_finish < model.possible_start_time(task, vm):
        return vm
    return None

  def reset(self):
    self.__vms = []


def default_vm_types():
  """
  Default catalog (AWS EC2 t2.nano / t2.micro / t2.small prices with DVFS tables of
  AMD Turion MT-34, AMD Opteron 2218 and Intel Xeon E5450 respectively).
  """
  return [
    VmType.from_hourly_cost(0, 0.0058,
                            [1.20, 1.15, 1.10, 1.05, 1.00, 0.90],
                            [1.80, 1.60, 1.40, 1.20, 1.00, 0.80]),
    VmType.from_hourly_cost(1, 0.0116,
                            [1.30, 1.25, 1.20, 1.15, 1.10, 1.05],
                            [2.60, 2.40, 2.20, 2.00, 1.80, 1.00]),
    VmType.from_hourly_cost(2, 0.0230,
                            [1.35, 1.17, 1.00, 0.85],
                            [3.00, 2.67, 2.33, 2.00]),
  ]
