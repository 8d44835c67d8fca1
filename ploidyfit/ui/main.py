import argparse
import logging

import ploidyfit.ui.run


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    argparser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    subparsers = argparser.add_subparsers()

    ploidyfit.ui.run.add_arguments(subparsers.add_parser('run'))

    args = vars(argparser.parse_args())
    func = args.pop('func')
    func(**args)


if __name__ == '__main__':
    main()
