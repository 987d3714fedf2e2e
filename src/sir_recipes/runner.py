#!/usr/bin/env python3
# src/sir_recipes/runner.py - one sub-command per recipe

import argparse
import logging
import re
import time
from functools import partial
from pathlib import Path
from typing import List, Optional

from numpy.random import default_rng

from .model.sir import DT, TMAX, U0, SIRParams
from .simulate import ode, jump, discrete, sde
from .simulate import batch_processing as batch
from .uncertainty import montecarlo, probint
from .inference import abc, data, fit, mcmc, nested
from .inference.likelihood import model_incidence
from .plotting import plots

logger = logging.getLogger(__name__)


# Parser for states like 990,10,0,0
def parse_float_list(s: Optional[str]) -> List[float]:
    if not s:
        return []
    return [float(x) for x in re.split(r"[,\s;]+", s.strip()) if x]


def parse_u0(s: Optional[str]) -> List[float]:
    u0 = parse_float_list(s)
    if len(u0) == 3:
        u0.append(0.0)
    if len(u0) != 4:
        raise argparse.ArgumentTypeError("--u0 needs S,I,R or S,I,R,C")
    return u0


def add_model_args(p, dt=DT):
    p.add_argument("--u0", type=parse_u0, default=",".join(f"{x:g}" for x in U0),
                   metavar="S,I,R[,C]",
                   help="Initial state (default: 990,10,0,0)")
    p.add_argument("--beta", type=float, default=SIRParams().beta,
                   help="Infection probability per contact (default: 0.05)")
    p.add_argument("--contact-rate", type=float, default=SIRParams().c,
                   help="Contacts per unit time (default: 10)")
    p.add_argument("--gamma", type=float, default=SIRParams().gamma,
                   help="Recovery rate (default: 0.25)")
    p.add_argument("--tmax", type=float, default=TMAX,
                   help=f"Simulation length (default: {TMAX:g})")
    p.add_argument("--dt", type=float, default=dt,
                   help=f"Output grid spacing (default: {dt:g})")


def add_obs_args(p):
    p.add_argument("--obs", default="data/observations.csv",
                   metavar="PATH",
                   help="Observed daily cases CSV (default: data/observations.csv)")
    p.add_argument("--i0-range", type=str, default="0.001,0.1",
                   help="Uniform prior on i0 (default: 0.001,0.1)")
    p.add_argument("--beta-range", type=str, default="0.01,0.1",
                   help="Uniform prior on beta (default: 0.01,0.1)")


def priors_from_args(args):
    return {
        "i0": tuple(parse_float_list(args.i0_range)),
        "beta": tuple(parse_float_list(args.beta_range)),
    }


def build_parser():
    p = argparse.ArgumentParser(description="SIR model recipes")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ---------- simulation ----------
    ode_p = sub.add_parser("ode", help="Deterministic ODE solution")
    add_model_args(ode_p)
    ode_p.add_argument("--method", default="RK45", help="solve_ivp method (default: RK45)")
    ode_p.add_argument("--out", default="data/ode.csv")
    ode_p.add_argument("--fig", default="figs/ode.png")

    jump_p = sub.add_parser("jump", help="Gillespie jump process, single realisation")
    add_model_args(jump_p)
    jump_p.add_argument("--seed", type=int, default=42)
    jump_p.add_argument("--out", default="data/jump.csv")
    jump_p.add_argument("--fig", default="figs/jump.png")

    markov_p = sub.add_parser("markov", help="Discrete-time stochastic Markov chain")
    add_model_args(markov_p)
    markov_p.add_argument("--seed", type=int, default=42)
    markov_p.add_argument("--deterministic", action="store_true",
                          help="Use the deterministic function map instead")
    markov_p.add_argument("--out", default="data/markov.csv")
    markov_p.add_argument("--fig", default="figs/markov.png")

    sde_p = sub.add_parser("sde", help="Diffusion approximation (Euler-Maruyama ensemble)")
    add_model_args(sde_p)
    sde_p.add_argument("--trajectories", type=int, default=100)
    sde_p.add_argument("--seed", type=int, default=42)
    sde_p.add_argument("--out", default="data/sde_summary.csv")
    sde_p.add_argument("--fig", default="figs/sde.png")

    batch_p = sub.add_parser("batch", help="Many stochastic simulations to CSV")
    add_model_args(batch_p, dt=1.0)
    batch_p.add_argument("-N", "--num", dest="N", type=int, default=1000,
                         help="Number of simulations (default: 1000)")
    batch_p.add_argument("--method", choices=batch.METHODS, default="jump")
    batch_p.add_argument("--major-threshold", type=int, default=100,
                         help="Final size counted as a major outbreak (default: 100)")
    batch_p.add_argument("--seed", type=int, default=42)
    batch_p.add_argument("--sample-size", type=int, default=200,
                         help="Trajectories drawn in the figure (default: 200)")
    batch_p.add_argument("--out", default="data/batch_simulations.csv")
    batch_p.add_argument("--fig", default="figs/batch_trajectories.png")

    # ---------- uncertainty ----------
    pi_p = sub.add_parser("probint", help="Probabilistic integration ensemble")
    add_model_args(pi_p, dt=1.0)
    pi_p.add_argument("--sigma", type=float, default=0.2)
    pi_p.add_argument("--order", type=int, default=1)
    pi_p.add_argument("--trajectories", type=int, default=100)
    pi_p.add_argument("--seed", type=int, default=42)
    pi_p.add_argument("--out", default="data/probint_summary.csv")
    pi_p.add_argument("--fig", default="figs/probint.png")

    mc_p = sub.add_parser("montecarlo", help="Propagate uniform parameter uncertainty")
    add_model_args(mc_p)
    mc_p.add_argument("--spread", type=float, default=0.2,
                      help="Relative half-width of uniform priors on beta and gamma (default: 0.2)")
    mc_p.add_argument("--samples", type=int, default=100)
    mc_p.add_argument("--seed", type=int, default=42)
    mc_p.add_argument("--n-jobs", type=int, default=1)
    mc_p.add_argument("--out", default="data/montecarlo_summary.csv")
    mc_p.add_argument("--fig", default="figs/montecarlo.png")

    # ---------- inference ----------
    obs_p = sub.add_parser("observe", help="Simulate Poisson daily case counts")
    add_model_args(obs_p, dt=1.0)
    obs_p.add_argument("--seed", type=int, default=1234)
    obs_p.add_argument("--out", default="data/observations.csv")
    obs_p.add_argument("--fig", default="figs/observations.png")

    fit_p = sub.add_parser("fit", help="Least-squares fit of i0 and beta")
    add_obs_args(fit_p)
    fit_p.add_argument("--out", default="data/fit.csv",
                       help="Observed and fitted daily cases plus the estimates (default: data/fit.csv)")
    fit_p.add_argument("--fig", default="figs/fit.png")

    ns_p = sub.add_parser("nested", help="Nested sampling (dynesty)")
    add_obs_args(ns_p)
    ns_p.add_argument("--nlive", type=int, default=200)
    ns_p.add_argument("--dlogz", type=float, default=0.1)
    ns_p.add_argument("--maxiter", type=int, default=None)
    ns_p.add_argument("--seed", type=int, default=42)
    ns_p.add_argument("--out", default="data/nested_posterior.csv")
    ns_p.add_argument("--fig", default="figs/nested_posterior.png")

    mcmc_p = sub.add_parser("mcmc", help="Random-walk Metropolis")
    add_obs_args(mcmc_p)
    mcmc_p.add_argument("--iterations", type=int, default=5000)
    mcmc_p.add_argument("--burn", type=int, default=1000)
    mcmc_p.add_argument("--proposal-sd", type=str, default="0.002,0.002",
                        help="Random-walk step sd for i0,beta (default: 0.002,0.002)")
    mcmc_p.add_argument("--seed", type=int, default=42)
    mcmc_p.add_argument("--out", default="data/mcmc_chain.csv")
    mcmc_p.add_argument("--fig", default="figs/mcmc_posterior.png")

    abc_p = sub.add_parser("abc", help="Approximate Bayesian computation (rejection or SMC)")
    add_obs_args(abc_p)
    abc_p.add_argument("--method", choices=abc.METHODS, default="rejection")
    abc_p.add_argument("--epsilon", type=float, default=50.0)
    abc_p.add_argument("--particles", type=int, default=500)
    abc_p.add_argument("--max-simulations", type=int, default=100000)
    abc_p.add_argument("--batch-size", type=int, default=1000)
    abc_p.add_argument("--populations", type=int, default=4, help="SMC populations (default: 4)")
    abc_p.add_argument("--quantile", type=float, default=0.5,
                       help="SMC: next epsilon is this quantile of the last distances (default: 0.5)")
    abc_p.add_argument("--simulator", choices=("ode", "markov"), default="ode")
    abc_p.add_argument("--n-jobs", type=int, default=-1, help="Worker processes (-1: all cores)")
    abc_p.add_argument("--seed", type=int, default=42)
    abc_p.add_argument("--out", default="data/abc_posterior.csv")
    abc_p.add_argument("--fig", default="figs/abc_posterior.png")

    return p


def write_csv(df, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


def params_from_args(args) -> SIRParams:
    return SIRParams(beta=args.beta, c=args.contact_rate, gamma=args.gamma)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    logger.debug("Arguments: %s", vars(args))
    t0 = time.perf_counter()

    if args.cmd == "ode":
        df = ode.solve_ode(u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=args.dt, method=args.method)
        write_csv(df, args.out)
        plots.plot_states(df, save_path=args.fig, title="SIR ODE")
        summary = ode.summarise_trajectory(df)
        print(f"Peak I = {summary['peak_I']:.1f} at t = {summary['peak_time']:.1f}; final size {summary['final_size']:.3f}")
        print("ODE solution ->", args.out)

    elif args.cmd == "jump":
        events = jump.simulate_jump(u0=args.u0, p=params_from_args(args), tmax=args.tmax,
                                    rng=default_rng(args.seed))
        write_csv(events, args.out)
        plots.plot_states(events, save_path=args.fig, title="SIR jump process", step=True)
        print(f"{len(events) - 1} events -> {args.out}")

    elif args.cmd == "markov":
        if args.deterministic:
            df = discrete.function_map(u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=args.dt)
        else:
            df = discrete.markov_chain(u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=args.dt,
                                       rng=default_rng(args.seed))
        write_csv(df, args.out)
        plots.plot_states(df, save_path=args.fig, title="SIR discrete time")
        print("Discrete-time trajectory ->", args.out)

    elif args.cmd == "sde":
        ens = sde.sde_ensemble(u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=args.dt,
                               n_trajectories=args.trajectories, seed=args.seed)
        summary = montecarlo.summarise_ensemble(ens)
        write_csv(summary, args.out)
        plots.plot_ensemble(summary, save_path=args.fig, title="SIR diffusion approximation")
        print("SDE ensemble summary ->", args.out)

    elif args.cmd == "batch":
        cfg = batch.BatchConfig(
            N=args.N,
            method=args.method,
            u0=args.u0,
            params=params_from_args(args),
            tmax=args.tmax,
            dt=args.dt,
            major_threshold=args.major_threshold,
            seed=args.seed,
            out_path=args.out,
        )
        batch.simulate_batch(cfg)
        df, time_cols = batch.load_batch_csv(args.out)
        plots.plot_batch(df, time_cols, save_path=args.fig, sample_size=args.sample_size, random_seed=args.seed)
        print("Simulation done ->", args.out)

    elif args.cmd == "probint":
        ens = probint.probint_ensemble(
            u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=args.dt,
            sigma=args.sigma, order=args.order, n_trajectories=args.trajectories, seed=args.seed,
        )
        summary = montecarlo.summarise_ensemble(ens)
        write_csv(summary, args.out)
        plots.plot_ensemble(summary, save_path=args.fig, title="Probabilistic integration")
        print("Probabilistic integration summary ->", args.out)

    elif args.cmd == "montecarlo":
        p = params_from_args(args)
        dists = montecarlo.uniform_around(p, spread=args.spread)
        ens = montecarlo.propagate(
            u0=args.u0, distributions=dists, tmax=args.tmax, dt=args.dt,
            n_samples=args.samples, seed=args.seed, n_jobs=args.n_jobs,
        )
        summary = montecarlo.summarise_ensemble(ens)
        write_csv(summary, args.out)
        plots.plot_ensemble(summary, save_path=args.fig, title="Parameter uncertainty")
        print("Monte Carlo summary ->", args.out)

    elif args.cmd == "observe":
        obs = data.simulate_observations(u0=args.u0, p=params_from_args(args), tmax=args.tmax,
                                         rng=default_rng(args.seed))
        data.save_observations(obs, args.out)
        expected = ode.daily_incidence(ode.solve_ode(u0=args.u0, p=params_from_args(args), tmax=args.tmax, dt=1.0))
        plots.plot_fit(obs, expected["incidence"].to_numpy(), save_path=args.fig,
                       title="Simulated daily cases and ODE incidence")
        print(f"{len(obs)} days of cases -> {args.out}")

    elif args.cmd == "fit":
        obs = data.load_observations(args.obs)
        priors = priors_from_args(args)
        bounds = ([priors["i0"][0], priors["beta"][0]], [priors["i0"][1], priors["beta"][1]])
        x0 = [sum(priors["i0"]) / 2, sum(priors["beta"]) / 2]
        res = fit.fit_least_squares(obs["cases"], x0=x0, bounds=bounds)
        fitted = model_incidence((res.i0, res.beta), tmax=float(len(obs)))[: len(obs)]
        out = obs[["day", "cases"]].copy()
        out["fitted"] = fitted
        out["i0"] = res.i0
        out["beta"] = res.beta
        out["rmse"] = res.rmse
        write_csv(out, args.out)
        plots.plot_fit(obs, fitted, save_path=args.fig)
        print(f"i0 = {res.i0:.4f}, beta = {res.beta:.4f}, RMSE = {res.rmse:.3f}")
        print("Fitted incidence ->", args.out)

    elif args.cmd == "nested":
        obs = data.load_observations(args.obs)
        cfg = nested.NestedConfig(priors=priors_from_args(args), nlive=args.nlive, dlogz=args.dlogz,
                                  maxiter=args.maxiter, seed=args.seed)
        res = nested.run_nested(obs["cases"], cfg)
        write_csv(res.samples, args.out)
        plots.plot_posterior(res.samples, save_path=args.fig, title="Nested sampling posterior")
        print(f"log Z = {res.logz:.3f} +/- {res.logzerr:.3f}")
        print("Posterior means:", ", ".join(f"{k} = {v:.4f}" for k, v in res.means.items()))
        print("Posterior samples ->", args.out)

    elif args.cmd == "mcmc":
        obs = data.load_observations(args.obs)
        cfg = mcmc.MCMCConfig(priors=priors_from_args(args), n_iter=args.iterations, burn=args.burn,
                              proposal_sd=tuple(parse_float_list(args.proposal_sd)), seed=args.seed)
        res = mcmc.run_mcmc(obs["cases"], cfg)
        write_csv(res.samples, args.out)
        plots.plot_posterior(res.samples, save_path=args.fig, title="Random-walk Metropolis posterior")
        print(f"Acceptance rate {res.acceptance_rate:.3f}")
        print("Posterior means:", ", ".join(f"{k} = {v:.4f}" for k, v in res.means.items()))
        print("Chain ->", args.out)

    elif args.cmd == "abc":
        obs = data.load_observations(args.obs)
        cfg = abc.ABCConfig(
            priors=priors_from_args(args),
            epsilon=args.epsilon,
            n_particles=args.particles,
            max_simulations=args.max_simulations,
            batch_size=args.batch_size,
            n_jobs=args.n_jobs,
            seed=args.seed,
            n_populations=args.populations,
            quantile=args.quantile,
        )
        simulator = None
        if args.simulator == "markov":
            simulator = partial(abc.markov_simulator, tmax=float(len(obs)))
        sampler = abc.abc_smc if args.method == "smc" else abc.abc_rejection
        res = sampler(obs["cases"], cfg, simulator=simulator)
        write_csv(res.samples, args.out)
        if not res.samples.empty:
            plots.plot_posterior(res.samples, save_path=args.fig, title=f"ABC {args.method} posterior")
        print(f"{len(res.samples)} particles from {res.n_simulations} simulations "
              f"(acceptance rate {res.acceptance_rate:.4f})")
        if args.method == "smc":
            print("Epsilon schedule:", ", ".join(f"{e:g}" for e in res.epsilons))
        print("ABC samples ->", args.out)

    print(f"Done in {time.perf_counter() - t0:.2f}s")


if __name__ == "__main__":
    main()
