# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# License:  GNU LGPL v3 or later; see the header of any source file.

import math
import unittest

from esdwb.algorithms.naive import reference_schedule
from esdwb.datacenter import DataCenter, VmType
from esdwb.errors import SchedulingError
from esdwb.model import (REMOTE, ExtendedFinishMode, TimingModel, average_execution_time, cost_on_type,
                         maximum_cost, minimum_cost)
from esdwb.schedule import Schedule
from esdwb.workflow import Task

from workflow_fixtures import diamond, fork_with_files, independent, three_point_type, two_point_type


class TestCostFunctions(unittest.TestCase):
  def test_cost_on_type(self):
    task = Task("t", length=3000.)
    slow = VmType(0, 0.01, [1.0], [1.0])
    fast = VmType(1, 0.03, [1.2], [2.0])
    # billed per started second
    self.assertAlmostEqual(cost_on_type(task, slow), 0.03)
    self.assertAlmostEqual(cost_on_type(task, fast), 0.06)
    self.assertAlmostEqual(minimum_cost(task, [slow, fast]), 0.03)
    self.assertAlmostEqual(maximum_cost(task, [slow, fast]), 0.06)
    self.assertAlmostEqual(average_execution_time(task, [slow, fast]), 2.25)


class TestReferenceTimes(unittest.TestCase):
  def setUp(self):
    self.workflow = diamond()
    self.vm_type = two_point_type()
    self.model = TimingModel(reference_schedule(self.workflow, self.vm_type, [self.vm_type]))

  def test_earliest_times(self):
    est = {t.id: self.model.earliest_start_time(t) for t in self.workflow}
    self.assertEqual(est, {"A": 0., "B": 1.5, "C": 1.5, "D": 3.})
    self.assertEqual(self.model.earliest_finish_time(self.workflow.task("D")), 4.5)
    self.assertEqual(self.model.estimated_makespan(self.workflow), 4.5)

  def test_latest_times(self):
    for task in self.workflow:
      lst = self.model.latest_start_time(task, 4.5)
      self.assertEqual(lst, self.model.earliest_start_time(task))
      self.assertEqual(self.model.latest_finish_time(task, 4.5), lst + self.model.execution_time(task))
      self.assertAlmostEqual(self.model.deadline(task, 1.3, 4.5), 1.3 * self.model.latest_finish_time(task, 4.5))
    # a looser makespan shifts every latest time
    self.assertEqual(self.model.latest_start_time(self.workflow.task("A"), 6.5), 2.)

  def test_transfers(self):
    workflow = fork_with_files()
    model = TimingModel(reference_schedule(workflow, self.vm_type, [self.vm_type]))
    p1, p2, consumer = workflow.tasks
    self.assertEqual(model.earliest_start_time(consumer), 5.)
    self.assertEqual(model.estimated_makespan(workflow), 5.5)
    self.assertEqual(model.latest_start_time(p1, 5.5), 3.)
    self.assertEqual(model.latest_start_time(p2, 5.5), 0.)
    self.assertEqual(model.extended_finish_time(p1, 5.5), 4.)

  def test_slower_bandwidth(self):
    workflow = fork_with_files()
    model = TimingModel(reference_schedule(workflow, self.vm_type, [self.vm_type]), bandwidth=2.)
    self.assertEqual(model.earliest_start_time(workflow.task("ID00003")), 3.)


class TestActualTimes(unittest.TestCase):
  def setUp(self):
    self.vm_type = two_point_type()
    self.dc = DataCenter([self.vm_type])
    self.schedule = Schedule("test")
    self.model = TimingModel(self.schedule)

  def test_same_vm(self):
    workflow = fork_with_files()
    vm = self.dc.launch_new_vm(self.vm_type)
    for task in workflow:
      self.schedule.assign(task, vm)
    p1, p2, consumer = workflow.tasks
    self.assertEqual(self.model.actual_start_time(p2), 1.)
    self.assertEqual(self.model.actual_start_time(consumer), 2.)
    self.assertEqual(self.model.actual_finish_time(consumer), 2.5)
    self.assertEqual(self.model.actual_makespan(workflow), 2.5)
    self.assertEqual(self.model.possible_start_time(consumer), 2.)
    self.assertEqual(self.model.possible_start_time(consumer, REMOTE), 6.)

  def test_no_overlap(self):
    workflow = independent(P=1000., Q=3000., R=2000.)
    vm = self.dc.launch_new_vm(self.vm_type)
    for task in workflow:
      self.schedule.assign(task, vm)
    tasks = self.schedule.tasks_on(vm)
    for before, after in zip(tasks, tasks[1:]):
      self.assertEqual(self.model.actual_finish_time(before), self.model.actual_start_time(after))
    for task in tasks:
      self.assertEqual(self.model.actual_finish_time(task),
                       self.model.actual_start_time(task) + self.model.execution_time(task))

  def test_operating_point_change(self):
    workflow = independent(P=1000.)
    vm = self.dc.launch_new_vm(self.vm_type)
    task = workflow.task("P")
    self.schedule.assign(task, vm)
    self.assertEqual(self.model.actual_finish_time(task), 0.5)
    vm.set_point(1)
    self.schedule.invalidate()
    self.assertEqual(self.model.actual_finish_time(task), 1.)
    self.assertAlmostEqual(self.model.energy(task), 1.0 ** 2 * 1.0 * 1.)
    self.assertAlmostEqual(self.model.cost(task), 0.01)

  def test_cost_and_energy(self):
    workflow = independent(P=3000., Q=1000.)
    for task in workflow:
      self.schedule.assign(task, self.dc.launch_new_vm(self.vm_type))
    p, q = workflow.tasks
    self.assertAlmostEqual(self.model.cost(p), 0.02)
    self.assertAlmostEqual(self.model.cost(q), 0.01)
    self.assertAlmostEqual(self.model.total_cost(workflow), 0.03)
    self.assertAlmostEqual(self.model.energy(p), 2.88 * 1.5)
    self.assertAlmostEqual(self.model.total_energy(workflow), 2.88 * 2.)

  def test_order_against_dependencies(self):
    workflow = fork_with_files()
    vm = self.dc.launch_new_vm(self.vm_type)
    p1, p2, consumer = workflow.tasks
    self.schedule.assign(consumer, vm)
    self.schedule.assign(p1, vm)
    self.schedule.assign(p2, vm)
    with self.assertRaises(SchedulingError):
      self.model.actual_start_time(consumer)

  def test_deep_chain(self):
    tasks = [Task("T%d" % idx, length=2000.) for idx in range(3000)]
    vm = self.dc.launch_new_vm(self.vm_type)
    for task in tasks:
      self.schedule.assign(task, vm)
    self.assertEqual(self.model.actual_finish_time(tasks[-1]), 3000.)

  def test_minimum_needed_speed(self):
    task = Task("t", length=3000.)
    self.assertEqual(TimingModel.minimum_needed_speed(task, 3., 1.5), 2000.)
    self.assertTrue(math.isinf(TimingModel.minimum_needed_speed(task, 1., 1.)))
    self.assertTrue(math.isinf(TimingModel.minimum_needed_speed(task, 1., 2.)))


class TestExtendedFinish(unittest.TestCase):
  def setUp(self):
    self.vm_type = three_point_type()
    self.workflow = independent(P=1000., Q=1000.)
    self.schedule = Schedule("test")
    self.model = TimingModel(self.schedule)
    vm = DataCenter([self.vm_type]).launch_new_vm(self.vm_type)
    for task in self.workflow:
      self.schedule.assign(task, vm)
    self.p, self.q = self.workflow.tasks

  def test_without_successors(self):
    self.assertEqual(self.model.extended_finish_time(self.p, 1.), 1.)

  def test_strict(self):
    self.assertEqual(self.model.possible_extended_finish_time(self.p, 1.), 0.5)
    self.assertEqual(self.model.possible_extended_finish_time(self.q, 1.), 1.)

  def test_legacy(self):
    legacy = ExtendedFinishMode.LEGACY
    self.assertEqual(self.model.possible_extended_finish_time(self.p, 1., legacy), 0.)
    self.assertEqual(self.model.possible_extended_finish_time(self.q, 1., legacy), 1.)


if __name__ == '__main__':
  unittest.main()
