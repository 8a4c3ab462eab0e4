from xec2.standard_stacks.ec2_instances_v1.impl import load_stack

load_stack()
