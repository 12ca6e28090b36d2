# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

# do not forget to keep a three-number version!!!
__FlowCalEngine_VERSION__ = "1.0.0"

about_msg = "FlowCalEngine v" + str(__FlowCalEngine_VERSION__) + '\n\n'

about_msg += """
AC power flow with outer-loop controls.

This program is free software; you can redistribute it and/or
modify it subject to the terms of the Mozilla Public License, v. 2.0.
If a copy of the MPL was not distributed with this file,
You can obtain one at https://mozilla.org/MPL/2.0/.
"""
