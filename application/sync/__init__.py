"""邮件同步应用层"""
