import sys

from sensor_pipeline.main import main

sys.exit(main())
