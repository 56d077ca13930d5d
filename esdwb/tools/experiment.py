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
Batch scheduling tool.

Usage::

    python -m esdwb.tools.experiment [-h] [-j JOBS] [-l {debug,info,warning,error,critical}]
                         [--alpha ALPHA] [--beta BETA] [--bandwidth BANDWIDTH]
                         [--algo [ALGO [ALGO ...]]] [--stop-on-error]
                         [--ledger-dir LEDGER_DIR] [--dump-dir DUMP_DIR] [--make-charts]
                         tasks output

    positional arguments:
      tasks                 path to file or directory containing workflow
                            definitions (*.xml, *.dax)
      output                path to the output file

    optional arguments:
      -h, --help            show this help message and exit
      -j JOBS, --jobs JOBS  number of parallel jobs to run
      -l {debug,info,warning,error,critical}, --log-level {debug,info,warning,error,critical}
                            job log level
      --alpha ALPHA         deadline laxity multiplier
      --beta BETA           budget fraction
      --bandwidth BANDWIDTH network bandwidth between VMs, Gbit/s
      --algo [ALGO [ALGO ...]]
                            name(s) of algorithms to use (ESDWB, ModifiedESDWB)
      --stop-on-error       stop experiment on a first error
      --ledger-dir          directory to store per-run budget ledgers (*.csv)
      --dump-dir            directory to store per-run schedule dumps (*.txt)
      --make-charts         generate chart for each execution

Every run produces one record of the output file. Makespan is normalized by the workflow
deadline, cost by the workflow budget and energy by the lowest energy among the algorithms
run on the same workflow.
"""

import argparse
import csv
import datetime
import fnmatch
import itertools
import json
import logging
import math
import multiprocessing
import os
import textwrap
import time

logging.getLogger("matplotlib").setLevel(logging.WARNING)
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.pylab as pylab

from ..algorithms import ESDWB, LEDGER_HEADER, ModifiedESDWB, workflow_budget, workflow_deadline
from ..model import TimingModel
from ..scheduler import Scheduler
from .dax import load_dax

_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FORMAT = "[%(name)s] [%(levelname)5s] [%(asctime)s] %(message)s"
_LOG_LEVEL_FROM_STRING = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL
}

ALGORITHMS = {
    "ESDWB": ESDWB,
    "ModifiedESDWB": ModifiedESDWB
}


def file_list(file_or_dir, masks=["*"]):
    if not os.path.exists(file_or_dir):
        raise Exception("path %s does not exist" % file_or_dir)
    if os.path.isdir(file_or_dir):
        result = []
        for fname in sorted(os.listdir(file_or_dir)):
            fpath = os.path.join(file_or_dir, fname)
            if os.path.isfile(fpath):
                if any((fnmatch.fnmatch(fname, pattern) for pattern in masks)):
                    result.append(fpath)
            else:
                result.extend(file_list(fpath, masks))
        return result
    else:
        return [os.path.abspath(file_or_dir)]


def run_name(tasks, algorithm):
    return "%s_%s" % (os.path.basename(tasks).rsplit(".", 1)[0], algorithm)


def write_ledger(path, ledger):
    with open(path, "w", newline="") as ledger_file:
        writer = csv.writer(ledger_file)
        writer.writerow(LEDGER_HEADER)
        for row in ledger:
            writer.writerow(row)


def run_experiment(job):
    tasks, algorithm, config = job
    stop_on_error = config["stop_on_error"]
    logging.basicConfig(level=config["log_level"], format=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    logger = logging.getLogger("esdwb.tools.Experiment")
    logger.debug("Starting experiment (tasks=%s, algorithm=%s)", tasks, algorithm)
    scheduler_class = ALGORITHMS[algorithm]
    # init return values with NaN's
    result = dict.fromkeys(["size", "deadline", "budget", "makespan", "cost", "energy", "sched_time"], float("NaN"))
    result["workflow"] = None
    try:
        workflow = load_dax(tasks)
        result["workflow"] = workflow.name
        result["size"] = len(workflow)
        result["deadline"] = workflow_deadline(workflow, config["scheduler"]["alpha"],
                                               bandwidth=config["scheduler"]["bandwidth"])
        result["budget"] = workflow_budget(workflow, config["scheduler"]["beta"])

        scheduler = scheduler_class(workflow, config=config["scheduler"])
        schedule = scheduler.run()
        model = TimingModel(schedule, scheduler.bandwidth)
        result["makespan"] = model.actual_makespan(workflow)
        result["cost"] = model.total_cost(workflow)
        result["energy"] = model.total_energy(workflow)
        result["sched_time"] = scheduler.scheduler_time

        name = run_name(tasks, algorithm)
        if config["ledger_dir"]:
            write_ledger(os.path.join(config["ledger_dir"], name + ".csv"), scheduler.ledger)
        if config["dump_dir"]:
            with open(os.path.join(config["dump_dir"], name + ".txt"), "w") as dump_file:
                dump_file.write(schedule.dump())
        if config["make_charts"]:
            make_chart(workflow, model, algorithm, name)
    except Exception:
        # output is not pretty, but complete and robust. it is a crash anyway.
        #   note the wrapping of job into a tuple
        message = "Scheduling failed! Parameters: %s" % (job,)
        if stop_on_error:
            raise Exception(message)
        else:
            logger.exception(message)
    return job, result


def progress_reporter(iterable, length, logger):
    start_time = last_result_timestamp = time.time()
    average_time = 0.
    for idx, element in enumerate(iterable):
        current = time.time()
        elapsed = current - last_result_timestamp
        last_result_timestamp = current
        count = idx + 1
        average_time = average_time * (count - 1) / float(count) + elapsed / count
        remaining = (length - idx) * average_time
        eta_string = (" [ETA: %s]" % datetime.timedelta(seconds=remaining)) if idx > 10 else ""
        logger.info("%d/%d%s", idx + 1, length, eta_string)
        yield element
    logger.info("Finished. %d experiments in %f seconds", length, time.time() - start_time)


def normalize(results):
    """
    Add normalized makespan, cost and energy to every result record (in place).
    """
    lowest_energy = {}
    for record in results:
        if not math.isnan(record["energy"]):
            lowest_energy[record["tasks"]] = min(record["energy"], lowest_energy.get(record["tasks"], float("inf")))
    for record in results:
        record["norm_makespan"] = record["makespan"] / record["deadline"] if record["deadline"] else float("NaN")
        record["norm_cost"] = record["cost"] / record["budget"] if record["budget"] else float("NaN")
        lowest = lowest_energy.get(record["tasks"])
        record["norm_energy"] = record["energy"] / lowest if lowest else float("NaN")
    return results


def make_chart(workflow, model, algorithm, fig_name):
    TASK_COLOR1 = 'dodgerblue'
    TASK_COLOR2 = 'royalblue'

    params = {'legend.fontsize': 'small',
              'figure.figsize': (8, 5),
              'axes.labelsize': 'small',
              'axes.titlesize': 'small',
              'xtick.labelsize': 'small',
              'ytick.labelsize': 'small'}
    pylab.rcParams.update(params)

    schedule = model.schedule
    fig = plt.figure()
    ax = fig.add_subplot(111)
    plt.title("Application: %s\nAlgorithm: %s\nMakespan: %.2f\nCost: %.4f\nEnergy: %.2f\n" %
              (workflow.name, algorithm, model.actual_makespan(workflow),
               model.total_cost(workflow), model.total_energy(workflow)),
              loc='left')
    plt.margins(x=0)

    vms = schedule.vms
    vm_labels = ["vm%d (type %s, %.0f MIPS)" % (vm.id, vm.type.id, vm.speed) for vm in vms]
    task_count = len(workflow)

    # draw task executions
    for idx, vm in enumerate(vms):
        for position, task in enumerate(schedule.tasks_on(vm)):
            start = model.actual_start_time(task)
            duration = model.execution_time(task)
            color = TASK_COLOR1 if position % 2 == 0 else TASK_COLOR2
            ax.broken_barh([(start, duration)], (idx - 0.4, 0.8), color=color, linewidth=0)
            # draw task names only for small apps
            if task_count <= 10:
                ax.text(start + duration / 2.0, idx, task.id, ha='center', va='center', color='white')

    ax.set_yticks(range(len(vms)))
    ax.set_yticklabels(vm_labels)
    ax.set_xlabel("time")
    plt.tight_layout()
    fig = plt.gcf()
    fig.savefig(fig_name + ".png", dpi=400)
    plt.close(fig)


def main():
    defaults = Scheduler._DEFAULT_CONFIG
    parser = argparse.ArgumentParser(description="Run experiments for a set of scheduling algorithms")
    parser.add_argument("tasks", type=str, help="path to file or directory containing workflow definitions (*.xml, *.dax)")
    parser.add_argument("output", type=str, help="path to the output file")
    parser.add_argument("-j", "--jobs", type=int, default=1, help="number of parallel jobs to run")
    parser.add_argument("-l", "--log-level", type=str, choices=["debug", "info", "warning", "error", "critical"],
                        default="warning", help="job log level")
    parser.add_argument("--alpha", type=float, default=defaults["alpha"], help="deadline laxity multiplier")
    parser.add_argument("--beta", type=float, default=defaults["beta"], help="budget fraction")
    parser.add_argument("--bandwidth", type=float, default=defaults["bandwidth"],
                        help="network bandwidth between VMs, Gbit/s")
    parser.add_argument("--algo", type=str, nargs="*", choices=sorted(ALGORITHMS),
                        help="name(s) of algorithms to use (all by default)")
    parser.add_argument("--stop-on-error", action="store_true", default=False, help="stop experiment on a first error")
    parser.add_argument("--ledger-dir", type=str, help="directory to store per-run budget ledgers")
    parser.add_argument("--dump-dir", type=str, help="directory to store per-run schedule dumps")
    parser.add_argument("--make-charts", action="store_true", default=False, help="generate chart for each execution")
    args = parser.parse_args()

    logging.basicConfig(level=_LOG_LEVEL_FROM_STRING[args.log_level], format=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    logger = logging.getLogger("Experiment")

    algorithms = args.algo if args.algo else sorted(ALGORITHMS)
    tasks = []
    for path in args.tasks.split(","):
        tasks.extend(file_list(path, ["*.xml", "*.dax"]))
    for directory in (args.ledger_dir, args.dump_dir):
        if directory and not os.path.isdir(directory):
            os.makedirs(directory)

    config = [{
        "stop_on_error": args.stop_on_error,
        "log_level": _LOG_LEVEL_FROM_STRING[args.log_level],
        "ledger_dir": args.ledger_dir,
        "dump_dir": args.dump_dir,
        "make_charts": args.make_charts,
        "scheduler": {
            "alpha": args.alpha,
            "beta": args.beta,
            "bandwidth": args.bandwidth
        }
    }]

    # convert to list just get length nicely
    jobs = list(itertools.product(tasks, algorithms, config))

    logger.info(textwrap.dedent("""\
  Starting the experiment.
    Total runs: %d

    Tasks source:    %s
    Tasks count:     %d

    Algorithms: %s

    Configuration:
  %s
  """) % (len(jobs), args.tasks, len(tasks), ", ".join(algorithms),
          "\n".join(["    %s: %s" % (k, v) for k, v in config[0].items()])
          ))

    results = []
    with multiprocessing.Pool(processes=args.jobs, maxtasksperchild=1) as pool:
        for job, result in progress_reporter(pool.imap_unordered(run_experiment, jobs, 1), len(jobs), logger):
            tasks_path, algorithm, _ = job
            result.update({
                "tasks": tasks_path,
                "algorithm": algorithm
            })
            results.append(result)

    results.sort(key=lambda r: (r["tasks"], r["algorithm"]))
    with open(args.output, "w") as out_file:
        json.dump(normalize(results), out_file, indent=4)


if __name__ == "__main__":
    main()
