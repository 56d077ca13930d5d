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

from .errors import UnassignedTaskError


class Schedule(object):
  """
  Assignment of tasks to VM instances.

  Keeps two consistent views over the same data:

  * VM id -> ordered list of task ids (execution order on the VM)
  * task id -> VM id

  Every mutation increments :attr:`generation`, which is what timing caches are keyed on.
  """
  def __init__(self, algorithm_name, workflow_name=None, workflow_size=None):
    self.algorithm_name = algorithm_name
    self.workflow_name = workflow_name
    self.workflow_size = workflow_size
    self.__tasks_by_vm = {}
    self.__vm_by_task = {}
    self.__tasks = {}
    self.__vms = {}
    self.__generation = 0

  @property
  def generation(self):
    return self.__generation

  def invalidate(self):
    """
    Mark the schedule as changed without touching the assignment.

    Must be called after changing an operating point of any VM used in the schedule.
    """
    self.__generation += 1

  def assign(self, task, vm):
    """
    Append the task to the end of the VM queue.
    """
    if task.id in self.__vm_by_task:
      raise ValueError("task {} is already assigned to VM {}".format(task.id, self.__vm_by_task[task.id]))
    self.__tasks_by_vm.setdefault(vm.id, []).append(task.id)
    self.__vm_by_task[task.id] = vm.id
    self.__tasks[task.id] = task
    self.__vms[vm.id] = vm
    self.__generation += 1

  def dismiss(self, task, vm):
    """
    Remove the task from the VM queue. VM with an empty queue is dropped from the schedule.
    """
    if self.__vm_by_task.get(task.id) != vm.id or self.__vms.get(vm.id) is not vm:
      raise UnassignedTaskError("task {} is not assigned to VM {}".format(task.id, vm.id))
    queue = self.__tasks_by_vm[vm.id]
    queue.remove(task.id)
    if not queue:
      del self.__tasks_by_vm[vm.id]
      del self.__vms[vm.id]
    del self.__vm_by_task[task.id]
    del self.__tasks[task.id]
    self.__generation += 1

  def is_assigned(self, task):
    return task.id in self.__vm_by_task

  def vm_of(self, task):
    """
    Get the VM the task is assigned to.

    Raises:
      UnassignedTaskError: task is not placed yet
    """
    try:
      return self.__vms[self.__vm_by_task[task.id]]
    except KeyError:
      raise UnassignedTaskError("task {} is not assigned to any VM".format(task.id))

  def has_vm(self, vm):
    """
    Check whether the VM has at least one task assigned.
    """
    return self.__vms.get(vm.id) is vm

  def tasks_on(self, vm):
    """
    Tasks assigned to the VM in execution order (empty list for unused VMs).
    """
    if not self.has_vm(vm):
      return []
    return [self.__tasks[task_id] for task_id in self.__tasks_by_vm[vm.id]]

  @property
  def vms(self):
    """
    Used VMs, ordered by id.
    """
    return [self.__vms[vm_id] for vm_id in sorted(self.__vms)]

  @property
  def tasks(self):
    return list(self.__tasks.values())

  def items(self):
    """
    Iterate over (vm, [tasks...]) pairs ordered by VM id.
    """
    for vm in self.vms:
      yield vm, self.tasks_on(vm)

  def __len__(self):
    return len(self.__vm_by_task)

  def _position(self, task, vm):
    if self.__vm_by_task.get(task.id) != vm.id or self.__vms.get(vm.id) is not vm:
      raise UnassignedTaskError("task {} is not assigned to VM {}".format(task.id, vm.id))
    return self.__tasks_by_vm[vm.id].index(task.id)

  def has_task_before(self, task, vm):
    return self._position(task, vm) > 0

  def task_before(self, task, vm):
    """
    Task queued on the VM right before the given one.

    Raises:
      UnassignedTaskError: task is the first one on the VM (or is not on the VM at all)
    """
    idx = self._position(task, vm)
    if idx == 0:
      raise UnassignedTaskError("task {} is the first task on VM {}".format(task.id, vm.id))
    return self.__tasks[self.__tasks_by_vm[vm.id][idx - 1]]

  def has_task_after(self, task, vm):
    return self._position(task, vm) < len(self.__tasks_by_vm[vm.id]) - 1

  def task_after(self, task, vm):
    """
    Task queued on the VM right after the given one.

    Raises:
      UnassignedTaskError: task is the last one on the VM (or is not on the VM at all)
    """
    idx = self._position(task, vm)
    queue = self.__tasks_by_vm[vm.id]
    if idx == len(queue) - 1:
      raise UnassignedTaskError("task {} is the last task on VM {}".format(task.id, vm.id))
    return self.__tasks[queue[idx + 1]]

  def dump(self):
    """
    Human-readable representation, tasks grouped by VM id ascending.
    """
    lines = []
    for vm, tasks in self.items():
      lines.append(repr(vm))
      lines.extend(repr(task) for task in tasks)
      lines.append("")
    return "\n".join(lines)

  def __repr__(self):
    return "Schedule(algorithm={}, workflow={}, vms={}, tasks={})".format(
      self.algorithm_name, self.workflow_name, len(self.__vms), len(self.__vm_by_task))
