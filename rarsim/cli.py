"""
Response-adaptive trial simulation CLI.

Usage:
    rarsim binary --ptrue 0.6 0.7 --tsize 992 --block 20 --stopbound 1.9991
    rarsim continuous --mean 0.091 0.0847 0.0847 --sd 0.009 0.009 0.009 \\
        --n1 9 --n2 132 --side lower
    rarsim continuous ... --n-sim 1000        # operating characteristics
"""

import argparse
import sys
import warnings

from .accrual import PopulationAccrual
from .delay import FixedDelay, NoDelay, NormalDelay
from .design import BinaryDesign, ContinuousDesign
from .exceptions import ConfigurationError, NumericDegeneracyError
from .index_table import IndexTable
from .simulation import (
    simulate_index_block_trial, simulate_optimal_design_trial, simulate_trials
)


def print_header(text):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(text)
    print("=" * 60)


def _delay(args):
    if args.delay_mean is not None:
        return NormalDelay(args.delay_mean, args.delay_sd)
    if args.delay is not None:
        return FixedDelay(args.delay)
    return NoDelay()


def _index_table(args):
    if args.index_table:
        return IndexTable.from_csv(args.index_table, family="binary",
                                   discount=args.discount)
    warnings.warn("No index table supplied; using the discount factor 0 index "
                  "(posterior mean)")
    prior = max(args.prior) if args.prior else 1
    return IndexTable.myopic(prior + args.tsize + args.block)


def build_binary_design(args) -> BinaryDesign:
    n_arms = len(args.ptrue)
    prior = None
    if args.prior:
        prior = [list(args.prior)] * n_arms
    return BinaryDesign(
        ptrue=args.ptrue,
        tsize=args.tsize,
        block=args.block,
        index_table=_index_table(args),
        stopbound=args.stopbound,
        accrual=PopulationAccrual(args.pats, args.n_max, args.enroll_rate),
        delay=_delay(args),
        rule=args.rule,
        prior=prior,
        ztype=args.ztype,
        side=args.side,
        n_runs=args.n_runs,
    )


def build_continuous_design(args) -> ContinuousDesign:
    return ContinuousDesign(
        mean=args.mean,
        sd=args.sd,
        n1=args.n1,
        n2=args.n2,
        accrual=PopulationAccrual(args.pats, args.n_max, args.enroll_rate),
        delay=_delay(args),
        alpha=args.alpha,
        cc=args.cc,
        side=args.side,
        arm_labels=args.labels,
    )


def run(args):
    """Simulate the requested design and print the result."""
    if args.endpoint == 'binary':
        design = build_binary_design(args)
        simulator = simulate_index_block_trial
    else:
        design = build_continuous_design(args)
        simulator = simulate_optimal_design_trial

    if args.n_sim is None:
        outcome = simulator(design, seed=args.seed)
        print_header(f"SIMULATED {args.endpoint.upper()} TRIAL")
        print(outcome)
        return outcome

    oc = simulate_trials(simulator, design, n_sim=args.n_sim, seed=args.seed)
    print_header(f"OPERATING CHARACTERISTICS ({oc.n_sim} trials)")
    print(oc.summary_table().to_string(index=False))
    print(f"\n  P(any arm selected): {oc.any_rejection_rate:.3f}")
    return oc


def _add_common(parser):
    group = parser.add_argument_group("accrual and delay")
    group.add_argument("--pats", type=float, default=10,
                       help="Patients affected per time unit (default: 10)")
    group.add_argument("--n-max", type=int, default=50000,
                       help="Patients simulated in the population (default: 50000)")
    group.add_argument("--enroll-rate", type=float, default=0.9,
                       help="Probability a patient enrolls (default: 0.9)")
    group.add_argument("--delay", type=float, help="Fixed outcome delay")
    group.add_argument("--delay-mean", type=float, help="Mean of a Normal outcome delay")
    group.add_argument("--delay-sd", type=float, default=0.0,
                       help="Standard deviation of a Normal outcome delay")

    parser.add_argument("--side", choices=['upper', 'lower'], default='upper',
                        help="Direction of the one-sided test (default: upper)")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--n-sim", type=int,
                        help="Simulate this many trials and report operating characteristics")


def make_parser():
    parser = argparse.ArgumentParser(
        prog="rarsim",
        description="Response-adaptive randomized trial simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rarsim binary --ptrue 0.6 0.7 --tsize 992 --block 20 --stopbound 1.9991 \\
      --delay-mean 60 --delay-sd 3
  rarsim continuous --mean 0.091 0.091 0.091 --sd 0.009 0.009 0.009 \\
      --n1 9 --n2 132 --side lower --n-sim 1000
        """
    )
    subparsers = parser.add_subparsers(dest="endpoint", required=True)

    binary = subparsers.add_parser("binary", help="Forward-looking index rule, binary endpoint")
    binary.add_argument("--ptrue", type=float, nargs='+', required=True,
                        help="Success probability per arm, control first")
    binary.add_argument("--tsize", type=int, required=True, help="Maximal sample size")
    binary.add_argument("--block", type=int, required=True, help="Block size")
    binary.add_argument("--stopbound", type=float, required=True,
                        help="Cut-off for the Z statistics")
    binary.add_argument("--rule", choices=['FLGI PM', 'FLGI PD', 'CFLGI'],
                        default='FLGI PM', help="Allocation rule (default: FLGI PM)")
    binary.add_argument("--ztype", choices=['pooled', 'unpooled'], default='unpooled',
                        help="Variance of the Z statistics (default: unpooled)")
    binary.add_argument("--prior", type=int, nargs=2, metavar=('S', 'F'),
                        help="Beta prior shared by all arms (default: 1 1)")
    binary.add_argument("--n-runs", type=int, default=100,
                        help="Virtual runs per allocation (default: 100)")
    binary.add_argument("--index-table", type=str,
                        help="CSV of precomputed index values")
    binary.add_argument("--discount", type=float,
                        help="Discount factor of --index-table, for reference")
    _add_common(binary)

    continuous = subparsers.add_parser("continuous",
                                       help="Optimal design rule, Normal endpoint")
    continuous.add_argument("--mean", type=float, nargs='+', required=True,
                            help="Mean response per arm, control first")
    continuous.add_argument("--sd", type=float, nargs='+', required=True,
                            help="Known standard deviation per arm")
    continuous.add_argument("--n1", type=int, required=True,
                            help="Equally randomized burn-in size")
    continuous.add_argument("--n2", type=int, required=True, help="Maximal sample size")
    continuous.add_argument("--alpha", type=float, default=0.025,
                            help="One-sided type I error (default: 0.025)")
    continuous.add_argument("--cc", type=float,
                            help="Reference response (default: average of --mean)")
    continuous.add_argument("--labels", nargs='+',
                            help="Arm labels for the printed results (default: 1..K)")
    _add_common(continuous)

    return parser


def main(argv=None):
    args = make_parser().parse_args(argv)
    try:
        run(args)
    except (ConfigurationError, NumericDegeneracyError) as e:
        print(f"\nError: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
