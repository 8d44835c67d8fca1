import argparse
import yaml

import pypeliner

import ploidyfit
import ploidyfit.workflow


def run(**args):
    config = {}
    if args['config'] is not None:
        with open(args['config']) as f:
            config = yaml.safe_load(f) or {}

    if args['capture_regions'] is not None:
        config['capture_regions'] = args['capture_regions']

    if args['capture_regions'] is not None and args['control_counts'] is None:
        raise Exception('--capture_regions requires --control_counts')

    pypeliner_config = config.copy()
    pypeliner_config.update(args)
    pyp = pypeliner.app.Pypeline([ploidyfit], pypeliner_config)

    workflow = ploidyfit.workflow.create_ploidyfit_workflow(
        args['sample_counts'],
        args['output_dir'],
        config,
        control_counts_filename=args['control_counts'],
        gc_profile_filename=args['gc_profile'],
    )

    pyp.run(workflow)


def add_arguments(argparser):
    pypeliner.app.add_arguments(argparser)

    argparser.add_argument('sample_counts',
        help='Input sample window read counts')

    argparser.add_argument('output_dir',
        help='Output directory')

    argparser.add_argument('--control_counts', default=None, required=False,
        help='Input control window read counts')

    argparser.add_argument('--gc_profile', default=None, required=False,
        help='Input GC content and mappability profile')

    argparser.add_argument('--capture_regions', default=None, required=False,
        help='Capture regions bed file for targeted sequencing')

    argparser.add_argument('--config', required=False,
        help='Configuration Filename')

    argparser.set_defaults(func=run)


if __name__ == '__main__':
    argparser = argparse.ArgumentParser()

    add_arguments(argparser)

    args = vars(argparser.parse_args())
    func = args.pop('func')
    func(**args)
