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


class SchedulingError(Exception):
  """
  Base class for all errors raised by the scheduling engine.
  """
  pass


class WorkflowError(SchedulingError):
  """
  Task graph is malformed (duplicate ids, inconsistent or dangling edges, cycles).
  """
  pass


class UnassignedTaskError(SchedulingError, LookupError):
  """
  Schedule query refers to a task (or a VM neighbour) that does not exist.
  """
  pass


class UnplaceableTaskError(SchedulingError):
  """
  No VM type can run the task within its budget.

  Attributes:
    task: the task that could not be placed
    budget: task budget computed for the failed round
  """
  def __init__(self, task, budget):
    self.task = task
    self.budget = budget
    super(UnplaceableTaskError, self).__init__(
      "no VM type can run task {} within budget {:.6g}".format(task.id, budget))
