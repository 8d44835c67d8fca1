import pypeliner
import pypeliner.managed as mgd

import ploidyfit.config
import ploidyfit.pipeline


def create_ploidyfit_workflow(
    sample_counts_filename,
    output_dir,
    config,
    control_counts_filename=None,
    gc_profile_filename=None,
):
    prefix = ploidyfit.pipeline.get_prefix(sample_counts_filename, ploidyfit.config.get_full_config(config))
    filenames = ploidyfit.pipeline.get_output_filenames(output_dir, prefix)

    max_threads = ploidyfit.config.get_param(config, 'max_threads')

    control_counts = None
    if control_counts_filename is not None:
        control_counts = mgd.InputFile(control_counts_filename)

    gc_profile = None
    if gc_profile_filename is not None:
        gc_profile = mgd.InputFile(gc_profile_filename)

    workflow = pypeliner.workflow.Workflow()

    workflow.transform(
        name='run_ploidyfit',
        ctx={'mem': 8, 'ncpus': max_threads},
        func='ploidyfit.pipeline.run_task',
        args=(
            mgd.OutputFile(filenames['ratio']),
            mgd.OutputFile(filenames['cnvs']),
            mgd.OutputFile(filenames['scores']),
            mgd.InputFile(sample_counts_filename),
            output_dir,
            config,
        ),
        kwargs={
            'control_counts_filename': control_counts,
            'gc_profile_filename': gc_profile,
        },
    )

    return workflow
