# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# License:  GNU LGPL v3 or later; see the header of any source file.

import unittest

import numpy

from esdwb.datacenter import DataCenter, Vm, VmType, default_vm_types
from esdwb.model import TimingModel
from esdwb.schedule import Schedule
from esdwb.workflow import Task, connect

from workflow_fixtures import three_point_type, two_point_type


class TestVmType(unittest.TestCase):
  def test_speeds_from_frequencies(self):
    tau = three_point_type()
    self.assertEqual(list(tau.speeds), [2000., 1000., 500.])
    self.assertEqual(tau.point_count, 3)
    self.assertEqual(tau.fastest_point, 0)
    self.assertEqual(tau.max_speed, 2000.)
    self.assertAlmostEqual(tau.cost_to_speed_ratio, 0.01 / 2000.)

  def test_tables_are_read_only(self):
    tau = two_point_type()
    with self.assertRaises(ValueError):
      tau.speeds[0] = 1.

  def test_invalid_tables(self):
    with self.assertRaises(ValueError):
      VmType(0, 0.01, [1.2, 1.0], [2.0])
    with self.assertRaises(ValueError):
      VmType(0, 0.01, [], [])

  def test_hourly_cost(self):
    tau = VmType.from_hourly_cost(7, 0.036, [1.0], [1.0])
    self.assertAlmostEqual(tau.cost_per_second, 1e-5)

  def test_default_catalog(self):
    catalog = default_vm_types()
    self.assertEqual([tau.id for tau in catalog], [0, 1, 2])
    self.assertTrue(numpy.allclose([tau.max_speed for tau in catalog], [1800., 2600., 3000.]))
    self.assertTrue(numpy.allclose([tau.cost_per_second * 3600 for tau in catalog], [0.0058, 0.0116, 0.0230]))


class TestVm(unittest.TestCase):
  def test_operating_point(self):
    vm = Vm(0, three_point_type())
    self.assertEqual(vm.point, 0)
    self.assertEqual(vm.speed, 2000.)
    self.assertAlmostEqual(vm.power_consumption(), 1.2 ** 2 * 2.0)
    vm.set_point(2)
    self.assertEqual(vm.speed, 500.)
    self.assertEqual(vm.frequency, 0.5)
    self.assertAlmostEqual(vm.power_consumption(), 0.8 ** 2 * 0.5)
    with self.assertRaises(IndexError):
      vm.set_point(3)
    with self.assertRaises(IndexError):
      vm.set_point(-1)


class TestDataCenter(unittest.TestCase):
  def setUp(self):
    self.slow = VmType(0, 0.01, [1.0], [1.0])
    self.fast = VmType(1, 0.04, [1.2], [2.0])
    self.other_fast = VmType(2, 0.02, [1.2], [2.0])
    self.dc = DataCenter([self.slow, self.fast, self.other_fast])

  def test_type_selection(self):
    # ties go to catalog order
    self.assertIs(self.dc.find_fastest_type(), self.fast)
    self.assertIs(self.dc.find_cheapest_type(), self.slow)
    self.assertIs(self.dc.find_costliest_type(), self.fast)

  def test_launch(self):
    vms = [self.dc.launch_new_vm(self.slow) for _ in range(3)]
    self.assertEqual([vm.id for vm in vms], [0, 1, 2])
    self.assertEqual(self.dc.vms, vms)
    self.dc.reset()
    self.assertEqual(self.dc.vms, [])
    self.assertEqual(self.dc.launch_new_vm(self.fast).id, 0)

  def test_empty_catalog(self):
    with self.assertRaises(ValueError):
      DataCenter([])

  def test_find_idle_vm(self):
    schedule = Schedule("test")
    model = TimingModel(schedule)
    first = Task("first", length=2000.)
    second = Task("second", length=1000.)
    self.assertIsNone(self.dc.find_idle_vm(schedule, first, self.slow, model))

    vm = self.dc.launch_new_vm(self.slow)
    # nothing assigned yet
    self.assertIs(self.dc.find_idle_vm(schedule, first, self.slow, model), vm)
    self.assertIsNone(self.dc.find_idle_vm(schedule, first, self.fast, model))

    schedule.assign(first, vm)
    # busy until 2.0, the second task is ready at 0.0
    self.assertIsNone(self.dc.find_idle_vm(schedule, second, self.slow, model))

  def test_occupied_vm_free_before_start(self):
    schedule = Schedule("test")
    model = TimingModel(schedule)
    a, b, c = Task("a", length=1000.), Task("b", length=5000.), Task("c", length=1000.)
    connect(b, c)
    vm0 = self.dc.launch_new_vm(self.slow)
    vm1 = self.dc.launch_new_vm(self.slow)
    schedule.assign(a, vm0)
    schedule.assign(b, vm1)
    # vm0 is done at 1.0, c can start at 5.0
    self.assertIs(self.dc.find_idle_vm(schedule, c, self.slow, model), vm0)

  def test_occupied_vm_free_exactly_at_start(self):
    schedule = Schedule("test")
    model = TimingModel(schedule)
    a, b, c = Task("a", length=5000.), Task("b", length=5000.), Task("c", length=1000.)
    connect(b, c)
    vm0 = self.dc.launch_new_vm(self.slow)
    vm1 = self.dc.launch_new_vm(self.slow)
    schedule.assign(a, vm0)
    schedule.assign(b, vm1)
    self.assertEqual(model.actual_finish_time(a), model.possible_start_time(c, vm0))
    self.assertIsNone(self.dc.find_idle_vm(schedule, c, self.slow, model))


if __name__ == '__main__':
  unittest.main()
